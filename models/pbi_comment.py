"""
PbiComment Model - discussion on backlog items
"""

from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, DateTime, Text, ForeignKey, func
from .base import Base, generate_id, utcnow

if TYPE_CHECKING:
    from .pbi import Pbi
    from .user import User


class PbiComment(Base):
    """
    Comments on PBIs. Deleted together with their PBI.
    """
    __tablename__ = "pbi_comments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    pbi_id: Mapped[str] = mapped_column(
        ForeignKey('pbis.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    pbi: Mapped["Pbi"] = relationship(back_populates="comments")

    user_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    user: Mapped[Optional["User"]] = relationship()

    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now(), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f'<PbiComment pbi_id={self.pbi_id} user_id={self.user_id}>'

    def to_dict(self):
        """Convert comment to dictionary for JSON serialization"""
        return {
            'id': self.id,
            'pbi_id': self.pbi_id,
            'user_id': self.user_id,
            'user': {
                'id': self.user.id,
                'name': self.user.name,
                'avatar_url': self.user.avatar_url,
            } if self.user else None,
            'content': self.content,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
