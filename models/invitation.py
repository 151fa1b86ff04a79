"""
Invitation Model for onboarding client team members.
SQLAlchemy 2.0-safe model for managing client invitations.
"""

import secrets
from typing import Optional, TYPE_CHECKING
from datetime import datetime, timedelta
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, DateTime, ForeignKey, func
from .base import Base, generate_id, utcnow

if TYPE_CHECKING:
    from .user import User
    from .client import Client

DEFAULT_EXPIRY_DAYS = 7


class Invitation(Base):
    """
    A pending offer for an email address to join a client with a role.
    Pending means not accepted; validity additionally requires an unexpired token.
    """
    __tablename__ = "invitations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    client: Mapped["Client"] = relationship()

    role: Mapped[str] = mapped_column(String(32), nullable=False)

    invited_by_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    invited_by: Mapped[Optional["User"]] = relationship(foreign_keys=[invited_by_id])

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())

    def __repr__(self):
        return f'<Invitation {self.email} -> {self.client_id}>'

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= utcnow()

    @property
    def is_pending(self) -> bool:
        return self.accepted_at is None

    @property
    def is_valid(self) -> bool:
        """Pending and not expired."""
        return self.is_pending and not self.is_expired

    def accept(self, user: "User"):
        """Mark accepted and bind the user to the invited client and role."""
        self.accepted_at = utcnow()
        user.client_id = self.client_id
        user.role = self.role

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'client_id': self.client_id,
            'client_name': self.client.name if self.client else None,
            'role': self.role,
            'invited_by': self.invited_by.name if self.invited_by else None,
            'is_valid': self.is_valid,
            'is_expired': self.is_expired,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'accepted_at': self.accepted_at.isoformat() if self.accepted_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def generate_token() -> str:
        return secrets.token_hex(32)

    @staticmethod
    def get_default_expiry(days: int = DEFAULT_EXPIRY_DAYS) -> datetime:
        return utcnow() + timedelta(days=days)
