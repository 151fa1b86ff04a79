"""
Comment Service - discussion threads on PBIs.
"""

import logging
from typing import List

from sqlalchemy import select

from models import db, Pbi, PbiComment, User
from services.backlog_errors import Forbidden, NotFound, ValidationError
from utils.auth import ensure_client_access

logger = logging.getLogger(__name__)


def _clean_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content is required", context={'field': 'content'})
    return content.strip()


def _accessible_comment(actor: User, comment_id: str) -> PbiComment:
    comment = db.session.get(PbiComment, comment_id)
    if comment is None:
        raise NotFound("Comment not found", context={'comment_id': comment_id})
    ensure_client_access(actor, comment.pbi.client_id)
    return comment


def _ensure_author_or_admin(actor: User, comment: PbiComment):
    if not actor.is_flowency_admin and comment.user_id != actor.id:
        raise Forbidden("Only the author can change this comment")


def list_comments(actor: User, pbi_id: str) -> List[PbiComment]:
    """Comments of a PBI, newest first."""
    pbi = db.session.get(Pbi, pbi_id)
    if pbi is None:
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})
    ensure_client_access(actor, pbi.client_id)

    return list(db.session.scalars(
        select(PbiComment)
        .where(PbiComment.pbi_id == pbi_id)
        .order_by(PbiComment.created_at.desc(), PbiComment.id.desc())
    ))


def create_comment(actor: User, pbi_id: str, content) -> PbiComment:
    pbi = db.session.get(Pbi, pbi_id)
    if pbi is None:
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})
    ensure_client_access(actor, pbi.client_id)

    comment = PbiComment(pbi_id=pbi.id, user_id=actor.id, content=_clean_content(content))
    db.session.add(comment)
    db.session.commit()
    return comment


def get_comment(actor: User, comment_id: str) -> PbiComment:
    return _accessible_comment(actor, comment_id)


def update_comment(actor: User, comment_id: str, content) -> PbiComment:
    comment = _accessible_comment(actor, comment_id)
    _ensure_author_or_admin(actor, comment)

    comment.content = _clean_content(content)
    db.session.commit()
    return comment


def delete_comment(actor: User, comment_id: str) -> None:
    comment = _accessible_comment(actor, comment_id)
    _ensure_author_or_admin(actor, comment)

    db.session.delete(comment)
    db.session.commit()
    logger.info(f"Comment {comment_id} deleted by user {actor.id}")
