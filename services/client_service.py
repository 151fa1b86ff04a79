"""
Client Service - tenant records, slugs and backlog statistics.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import select, func

from models import db, Client, Pbi, PbiStatus, User
from models.base import utcnow
from services.backlog_errors import NotFound, ValidationError
from utils.auth import ensure_client_access

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ('name', 'slug', 'logo_url', 'description')


def is_slug_available(slug: str, exclude_id: Optional[str] = None) -> bool:
    existing_id = db.session.scalar(select(Client.id).where(Client.slug == slug))
    if existing_id is None:
        return True
    return exclude_id is not None and existing_id == exclude_id


def generate_unique_slug(name: str) -> str:
    """Slug from the name, suffixed -1, -2, ... until unused."""
    base_slug = Client.slugify(name)
    if not base_slug:
        raise ValidationError("Client name must contain letters or digits")

    slug = base_slug
    counter = 1
    while not is_slug_available(slug):
        slug = f"{base_slug}-{counter}"
        counter += 1
    return slug


def get_client_by_slug(slug: str) -> Client:
    client = db.session.scalar(select(Client).where(Client.slug == slug))
    if client is None:
        raise NotFound("Client not found", context={'slug': slug})
    return client


def get_accessible_client(user: User, slug: str) -> Client:
    """Resolve a slug and check the user may act on that client."""
    client = get_client_by_slug(slug)
    ensure_client_access(user, client.id)
    return client


def create_client(name: str, slug: Optional[str] = None, logo_url: Optional[str] = None,
                  description: Optional[str] = None) -> Client:
    name = (name or '').strip()
    if not name:
        raise ValidationError("Name is required")

    if slug:
        slug = Client.slugify(slug)
        if not slug:
            raise ValidationError("Slug must contain letters or digits")
        if not is_slug_available(slug):
            raise ValidationError("Slug is already taken", context={'slug': slug})
    else:
        slug = generate_unique_slug(name)

    client = Client(name=name, slug=slug, logo_url=logo_url, description=description)
    db.session.add(client)
    db.session.commit()

    logger.info(f"Client created: {client.slug}")
    return client


def list_clients(include_archived: bool = False) -> List[Client]:
    stmt = select(Client)
    if not include_archived:
        stmt = stmt.where(Client.archived_at.is_(None))
    return list(db.session.scalars(stmt.order_by(Client.name.asc())))


def update_client(client: Client, data: Dict) -> Client:
    for key in _UPDATABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if key == 'name':
            value = (value or '').strip()
            if not value:
                raise ValidationError("Name cannot be empty")
        elif key == 'slug':
            value = Client.slugify(value or '')
            if not value:
                raise ValidationError("Slug must contain letters or digits")
            if not is_slug_available(value, exclude_id=client.id):
                raise ValidationError("Slug is already taken", context={'slug': value})
        setattr(client, key, value)

    db.session.commit()
    return client


def archive_client(client: Client) -> Client:
    client.archived_at = utcnow()
    db.session.commit()
    logger.info(f"Client archived: {client.slug}")
    return client


def restore_client(client: Client) -> Client:
    client.archived_at = None
    db.session.commit()
    logger.info(f"Client restored: {client.slug}")
    return client


def get_client_stats(client: Client) -> Dict:
    """PBI counts by status plus user count."""
    status_counts = dict(db.session.execute(
        select(Pbi.status, func.count(Pbi.id))
        .where(Pbi.client_id == client.id)
        .group_by(Pbi.status)
    ).all())
    user_count = db.session.scalar(
        select(func.count(User.id)).where(User.client_id == client.id)
    ) or 0

    stats = {status.value: status_counts.get(status.value, 0) for status in PbiStatus}
    stats['total_pbis'] = sum(status_counts.values())
    stats['total_users'] = user_count
    return stats
