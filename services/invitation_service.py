"""
Invitation Service
Creates, validates and accepts client team invitations.
Invitations are persisted with a random token; the invite link carries only the token.
"""

import logging
import re
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import select, delete

from models import db, Client, Invitation, User, UserRole
from models.base import utcnow
from models.invitation import DEFAULT_EXPIRY_DAYS
from services.backlog_errors import Forbidden, NotFound, ValidationError
from utils.auth import ensure_can_manage_client

logger = logging.getLogger(__name__)

INVITABLE_ROLES = (UserRole.CLIENT_ADMIN.value, UserRole.CLIENT_MEMBER.value)


def _is_valid_email(email: str) -> bool:
    """Basic email validation."""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def _expiry_days() -> int:
    return int(current_app.config.get('INVITATION_EXPIRY_DAYS', DEFAULT_EXPIRY_DAYS))


def has_pending_invitation(email: str, client_id: str) -> bool:
    invitation_id = db.session.scalar(
        select(Invitation.id).where(
            Invitation.email == email.lower(),
            Invitation.client_id == client_id,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > utcnow(),
        )
    )
    return invitation_id is not None


def create_invitation(inviter: User, email: str, client_id: str, role: str) -> Invitation:
    """
    Invite `email` to join a client.

    Flowency admins may invite to any client, client admins only to their own.
    Rejects existing members and duplicate pending invitations.
    """
    if not email or not client_id or not role:
        raise ValidationError("email, client_id, and role are required")
    if not isinstance(email, str):
        raise ValidationError("email must be a string", context={'field': 'email'})

    if role not in INVITABLE_ROLES:
        raise ValidationError("Invalid role. Must be client_admin or client_member", context={'role': role})

    email = email.strip().lower()
    if not _is_valid_email(email):
        raise ValidationError("Invalid email address", context={'email': email})

    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFound("Client not found", context={'client_id': client_id})

    ensure_can_manage_client(inviter, client.id)

    existing_user = db.session.scalar(select(User).where(User.email == email))
    if existing_user and existing_user.client_id == client.id:
        raise ValidationError("User is already a member of this client")

    if has_pending_invitation(email, client.id):
        raise ValidationError("A pending invitation already exists for this email")

    invitation = Invitation(
        token=Invitation.generate_token(),
        email=email,
        client_id=client.id,
        role=role,
        invited_by_id=inviter.id,
        expires_at=Invitation.get_default_expiry(_expiry_days()),
    )
    db.session.add(invitation)
    db.session.commit()

    logger.info(f"Invitation created: {inviter.email} -> {email} for client {client.slug}")
    return invitation


def get_invitation_by_token(token: str) -> Invitation:
    invitation = db.session.scalar(select(Invitation).where(Invitation.token == token))
    if invitation is None:
        raise NotFound("Invalid invitation")
    return invitation


def validate_invite_token(token: str) -> Dict:
    """
    Validate an invite token without accepting it.
    Used by the invite page to pre-fill client and email.
    """
    invitation = db.session.scalar(select(Invitation).where(Invitation.token == token))

    if invitation is None:
        return {'valid': False, 'error': 'Invalid invitation'}

    if not invitation.is_pending:
        return {'valid': False, 'error': 'Invitation has already been accepted'}

    if invitation.is_expired:
        return {'valid': False, 'error': 'Invitation has expired'}

    return {
        'valid': True,
        'email': invitation.email,
        'client_name': invitation.client.name if invitation.client else None,
        'inviter_name': invitation.invited_by.name if invitation.invited_by else None,
        'role': invitation.role,
    }


def accept_invitation(token: str, name: Optional[str] = None, password: Optional[str] = None,
                      actor: Optional[User] = None) -> User:
    """
    Accept an invitation, creating the user when the email is new.

    A new account must supply name and password. An existing account can
    only accept while signed in as itself (`actor`), and its password is
    never touched. Returns the user now bound to the invited client and role.
    """
    invitation = get_invitation_by_token(token)

    if not invitation.is_pending:
        raise ValidationError("Invitation has already been accepted")
    if invitation.is_expired:
        raise ValidationError("Invitation has expired")

    user = db.session.scalar(select(User).where(User.email == invitation.email))
    if user is None:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Name is required", context={'field': 'name'})
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required", context={'field': 'password'})
        user = User(email=invitation.email, name=name.strip())
        user.set_password(password)
        db.session.add(user)
    else:
        if actor is None or actor.id != user.id:
            logger.warning(f"Invitation {invitation.id} for existing account {user.email} "
                           f"refused: not signed in as that account")
            raise Forbidden("Sign in as the invited account to accept this invitation")
        if user.is_flowency_admin:
            raise ValidationError("Agency accounts cannot join a client")

    try:
        invitation.accept(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error(f"Failed to accept invitation {invitation.id}", exc_info=True)
        raise

    logger.info(f"Invitation accepted: {user.email} joined client {invitation.client_id}")
    return user


def list_pending_invitations(actor: User, client: Client) -> List[Invitation]:
    ensure_can_manage_client(actor, client.id)
    return list(db.session.scalars(
        select(Invitation)
        .where(
            Invitation.client_id == client.id,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > utcnow(),
        )
        .order_by(Invitation.created_at.desc())
    ))


def delete_invitation(actor: User, invitation_id: str) -> None:
    invitation = db.session.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFound("Invitation not found", context={'invitation_id': invitation_id})
    ensure_can_manage_client(actor, invitation.client_id)

    db.session.delete(invitation)
    db.session.commit()


def cleanup_expired_invitations() -> int:
    """Delete pending invitations past their expiry. Returns the number removed."""
    result = db.session.execute(
        delete(Invitation).where(
            Invitation.accepted_at.is_(None),
            Invitation.expires_at < utcnow(),
        )
    )
    db.session.commit()
    count = result.rowcount or 0
    if count:
        logger.info(f"[INVITE_CLEANUP] Removed {count} expired invitations")
    return count
