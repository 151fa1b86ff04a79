"""
Client Model - the tenant that owns a backlog.
"""

import re
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Text, DateTime, func
from .base import Base, generate_id

if TYPE_CHECKING:
    from .user import User
    from .pbi import Pbi


class Client(Base):
    """
    An organisation managed by the agency. Owns its PBIs, users and
    invitations; nothing it owns is visible to another client.
    """
    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Soft archive; archived clients drop out of the default listing
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    users: Mapped[list["User"]] = relationship(back_populates="client")
    pbis: Mapped[list["Pbi"]] = relationship(
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Pbi.stack_position",
    )

    def __repr__(self):
        return f'<Client {self.slug}>'

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @staticmethod
    def slugify(name: str) -> str:
        """Lowercase, collapse non-alphanumerics to '-', trim edge dashes."""
        return re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'logo_url': self.logo_url,
            'description': self.description,
            'archived_at': self.archived_at.isoformat() if self.archived_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
