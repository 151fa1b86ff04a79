"""
User Service - team members of a client and agency accounts.

Visibility: Flowency admins see everyone, other users see themselves and
their own client's team. Only Flowency admins change roles or delete
accounts; people edit their own name and avatar.
"""

import logging
from typing import Dict, List

from sqlalchemy import select, update

from models import db, Attachment, Client, Invitation, Pbi, PbiComment, User, UserRole
from services.backlog_errors import EmptyInput, Forbidden, NotFound, ValidationError
from utils.auth import ensure_client_access

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (UserRole.CLIENT_ADMIN.value, UserRole.CLIENT_MEMBER.value)
UPDATABLE_FIELDS = ('name', 'avatar_url', 'role')


def can_view_user(actor: User, user: User) -> bool:
    if actor.is_flowency_admin or actor.id == user.id:
        return True
    return actor.client_id is not None and actor.client_id == user.client_id


def _load_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found", context={'user_id': user_id})
    return user


def list_users_by_client(actor: User, client: Client) -> List[User]:
    """The client's team, by name."""
    ensure_client_access(actor, client.id)
    return list(db.session.scalars(
        select(User).where(User.client_id == client.id).order_by(User.name.asc(), User.id)
    ))


def get_user(actor: User, user_id: str) -> User:
    user = _load_user(user_id)
    if not can_view_user(actor, user):
        raise Forbidden("You do not have access to this user", context={'user_id': user_id})
    return user


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name cannot be empty", context={'field': 'name'})
    return name.strip()


def _clean_avatar_url(avatar_url):
    if avatar_url is None:
        return None
    if not isinstance(avatar_url, str):
        raise ValidationError("avatar_url must be a string", context={'field': 'avatar_url'})
    return avatar_url.strip() or None


def update_user(actor: User, user_id: str, data: Dict) -> User:
    """
    Apply a partial update of name, avatar_url and role.

    Role changes are for Flowency admins only and never touch another
    Flowency admin; name and avatar belong to the user themself (or a
    Flowency admin).
    """
    user = get_user(actor, user_id)
    changes = {field: data[field] for field in UPDATABLE_FIELDS if field in data}

    if 'role' in changes:
        if not actor.is_flowency_admin:
            raise Forbidden("Only Flowency admins can change user roles")
        if user.is_flowency_admin:
            raise ValidationError("Cannot change Flowency admin roles")
        if changes['role'] not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "Invalid role. Must be client_admin or client_member",
                context={'role': changes['role']},
            )

    if 'name' in changes or 'avatar_url' in changes:
        if not actor.is_flowency_admin and actor.id != user.id:
            raise Forbidden("You can only edit your own profile")

    if not changes:
        raise EmptyInput("No fields to update")

    if 'name' in changes:
        user.name = _clean_name(changes['name'])
    if 'avatar_url' in changes:
        user.avatar_url = _clean_avatar_url(changes['avatar_url'])
    if 'role' in changes and changes['role'] != user.role:
        logger.info(f"Role of {user.email} changed {user.role} -> {changes['role']} by {actor.email}")
        user.role = changes['role']

    db.session.commit()
    return user


def delete_user(actor: User, user_id: str) -> None:
    """
    Remove an account. Authored comments, attachments, PBIs and sent
    invitations stay, with the author reference cleared.
    """
    if not actor.is_flowency_admin:
        raise Forbidden("Only Flowency admins can delete users")

    user = _load_user(user_id)
    if user.id == actor.id:
        raise ValidationError("Cannot delete your own account")
    if user.is_flowency_admin:
        raise ValidationError("Cannot delete Flowency admin accounts")

    email = user.email
    try:
        for column in (PbiComment.user_id, Attachment.uploaded_by_id, Invitation.invited_by_id, Pbi.created_by_id):
            db.session.execute(
                update(column.class_)
                .where(column == user.id)
                .values({column.key: None})
                .execution_options(synchronize_session=False)
            )
        db.session.delete(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error(f"Failed to delete user {user_id}", exc_info=True)
        raise

    logger.info(f"User {email} deleted by {actor.email}")
