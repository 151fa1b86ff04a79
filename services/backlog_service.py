"""
Backlog Service - the application-facing PBI operations.

Every operation authorizes the acting user against the owning client before
delegating position changes to the ranking engine. Input is validated up
front so a rejected request never opens a write transaction.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select

from models import db, Attachment, Client, Effort, Pbi, PbiStatus, PbiType, User
from services import ranking_engine
from services.attachment_service import delete_blobs
from services.backlog_errors import NotFound, ValidationError
from services.pbi_query_builder import PbiFilter, PbiQueryBuilder, parse_enum
from utils.auth import ensure_client_access

logger = logging.getLogger(__name__)


def _clean_title(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Title is required", context={'field': 'title'})
    return value.strip()


def _clean_description(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Description must be a string", context={'field': 'description'})
    return value.strip() or None


def _clean_position(value) -> int:
    # bool is an int subclass; true/false are not positions
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("stack_position must be an integer", context={'field': 'stack_position'})
    return value


def list_pbis(actor: User, client: Client, filters: Optional[PbiFilter] = None) -> List[Pbi]:
    ensure_client_access(actor, client.id)
    stmt = PbiQueryBuilder.get_client_pbis_query(client.id, filters)
    return list(db.session.scalars(stmt).unique())


def get_pbi(actor: User, pbi_id: str) -> Pbi:
    pbi = db.session.get(Pbi, pbi_id)
    if pbi is None:
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})
    ensure_client_access(actor, pbi.client_id)
    return pbi


def create_pbi(actor: User, client: Client, data: Dict[str, Any]) -> Pbi:
    """
    Validate the fields and append the new PBI to the bottom of the backlog.

    Required: title, type. Optional: description, status (default todo), effort.
    """
    ensure_client_access(actor, client.id)
    data = data or {}

    title = _clean_title(data.get('title'))
    if not data.get('type'):
        raise ValidationError("Type is required", context={'field': 'type'})
    pbi_type = parse_enum(PbiType, data['type'], 'type')
    status = parse_enum(PbiStatus, data['status'], 'status') if data.get('status') else PbiStatus.TODO
    effort = parse_enum(Effort, data['effort'], 'effort') if data.get('effort') else None

    pbi = ranking_engine.append_pbi(
        client.id,
        title=title,
        description=_clean_description(data.get('description')),
        type=pbi_type.value,
        status=status.value,
        effort=effort.value if effort else None,
        created_by_id=actor.id,
    )
    logger.info(f"PBI {pbi.id} created in client {client.slug} by user {actor.id}")
    return pbi


def update_pbi(actor: User, pbi_id: str, data: Dict[str, Any]) -> Pbi:
    """
    Apply a partial update.

    A stack_position that differs from the stored one is handed to the
    ranking engine as a single-item move (clamped there); the remaining
    fields are written in their own transaction afterwards. Returns the PBI
    as stored after both steps.
    """
    pbi = get_pbi(actor, pbi_id)
    data = data or {}

    changes: Dict[str, Any] = {}
    if 'title' in data:
        changes['title'] = _clean_title(data['title'])
    if 'description' in data:
        changes['description'] = _clean_description(data['description'])
    if 'type' in data:
        changes['type'] = parse_enum(PbiType, data['type'], 'type').value
    if 'status' in data:
        changes['status'] = parse_enum(PbiStatus, data['status'], 'status').value
    if 'effort' in data:
        changes['effort'] = parse_enum(Effort, data['effort'], 'effort').value if data['effort'] is not None else None

    requested_position = None
    if data.get('stack_position') is not None:
        requested_position = _clean_position(data['stack_position'])

    if requested_position is not None and requested_position != pbi.stack_position:
        ranking_engine.reorder_pbi(pbi.id, requested_position, client_id=pbi.client_id)

    if changes:
        pbi = db.session.get(Pbi, pbi_id)
        if pbi is None:
            raise NotFound("PBI not found", context={'pbi_id': pbi_id})
        for key, value in changes.items():
            setattr(pbi, key, value)
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info(f"PBI {pbi_id} updated by user {actor.id}: {sorted(changes)}")

    return db.session.get(Pbi, pbi_id)


def delete_pbi(actor: User, pbi_id: str) -> None:
    """Delete the PBI (compacting the positions below it), then drop its blobs."""
    pbi = get_pbi(actor, pbi_id)
    client_id = pbi.client_id
    storage_keys = list(db.session.scalars(
        select(Attachment.storage_key).where(Attachment.pbi_id == pbi_id)
    ))

    ranking_engine.delete_pbi(pbi_id, client_id=client_id)
    logger.info(f"PBI {pbi_id} deleted from client {client_id} by user {actor.id}")

    if storage_keys:
        delete_blobs(storage_keys)


def reorder_pbi(actor: User, pbi_id: str, requested_position) -> ranking_engine.MoveResult:
    pbi = get_pbi(actor, pbi_id)
    return ranking_engine.reorder_pbi(pbi.id, _clean_position(requested_position), client_id=pbi.client_id)


def bulk_reorder(actor: User, client: Client, ordered_ids: Sequence[str]) -> int:
    ensure_client_access(actor, client.id)
    return ranking_engine.bulk_reorder(client.id, ordered_ids)
