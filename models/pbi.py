"""
PBI Model - Product Backlog Items and their stack rank.
SQLAlchemy 2.0-safe model; stack_position is maintained by services.ranking_engine.
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, func, Index, UniqueConstraint
from .base import Base, generate_id, utcnow

if TYPE_CHECKING:
    from .client import Client
    from .user import User
    from .pbi_comment import PbiComment
    from .attachment import Attachment


class PbiType(str, Enum):
    FEATURE = "feature"
    BUG = "bug"
    TWEAK = "tweak"
    IDEA = "idea"


class PbiStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"


class Effort(str, Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


class Pbi(Base):
    """
    A unit of work in a client's backlog.

    stack_position is a dense 1-based rank per client (1 = top of backlog).
    The (client_id, stack_position) pair is unique; inside a ranking
    transaction rows may briefly hold 0 or a negative value while they are
    being moved.
    """
    __tablename__ = "pbis"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    client: Mapped["Client"] = relationship(back_populates="pbis")

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    type: Mapped[str] = mapped_column(String(16), nullable=False)  # feature, bug, tweak, idea
    status: Mapped[str] = mapped_column(String(16), default=PbiStatus.TODO.value, nullable=False)  # todo, in_progress, done, blocked
    effort: Mapped[Optional[str]] = mapped_column(String(4))  # XS, S, M, L, XL

    stack_position: Mapped[int] = mapped_column(Integer, nullable=False)

    created_by_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by: Mapped[Optional["User"]] = relationship(foreign_keys=[created_by_id])

    comments: Mapped[list["PbiComment"]] = relationship(
        back_populates="pbi",
        cascade="all, delete-orphan",
    )
    attachments: Mapped[list["Attachment"]] = relationship(
        back_populates="pbi",
        cascade="all, delete-orphan",
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('client_id', 'stack_position', name='uq_pbis_client_stack_position'),
        Index('ix_pbis_client_status', 'client_id', 'status'),
    )

    def __repr__(self):
        return f'<Pbi {self.id} #{self.stack_position}: {self.title}>'

    def to_dict(self, include_counts=True):
        data = {
            'id': self.id,
            'client_id': self.client_id,
            'title': self.title,
            'description': self.description,
            'type': self.type,
            'status': self.status,
            'effort': self.effort,
            'stack_position': self.stack_position,
            'created_by_id': self.created_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

        if self.created_by:
            data['creator'] = {
                'id': self.created_by.id,
                'name': self.created_by.name,
                'avatar_url': self.created_by.avatar_url,
            }

        if include_counts:
            data['comment_count'] = len(self.comments)
            data['attachment_count'] = len(self.attachments)

        return data
