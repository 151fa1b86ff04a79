"""
User Model for agency staff and client team members.
SQLAlchemy 2.0-safe model; identity is resolved by Flask-Login from the session.
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from flask_login import UserMixin
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, DateTime, ForeignKey, func
from werkzeug.security import generate_password_hash, check_password_hash
from .base import Base, generate_id

if TYPE_CHECKING:
    from .client import Client


class UserRole(str, Enum):
    """Roles issued by the identity layer."""
    FLOWENCY_ADMIN = "flowency_admin"
    CLIENT_ADMIN = "client_admin"
    CLIENT_MEMBER = "client_member"


class User(UserMixin, Base):
    """
    A person signed in to the backlog tool.

    Flowency admins have no client and may act on every client; client
    admins and members are bound to exactly one client.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(512))
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))

    role: Mapped[str] = mapped_column(String(32), default=UserRole.CLIENT_MEMBER.value, nullable=False)

    client_id: Mapped[Optional[str]] = mapped_column(ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    client: Mapped[Optional["Client"]] = relationship(back_populates="users")

    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    @property
    def is_flowency_admin(self) -> bool:
        return self.role == UserRole.FLOWENCY_ADMIN.value

    @property
    def is_client_admin(self) -> bool:
        return self.role == UserRole.CLIENT_ADMIN.value

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'avatar_url': self.avatar_url,
            'role': self.role,
            'client_id': self.client_id,
            'last_login_at': self.last_login_at.isoformat() if self.last_login_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
