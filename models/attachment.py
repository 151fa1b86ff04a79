"""
Attachment Model - file metadata for blobs held in object storage.
The bytes never pass through this service; uploads and downloads use presigned URLs.
"""

from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, ForeignKey, func
from .base import Base, generate_id, utcnow

if TYPE_CHECKING:
    from .pbi import Pbi
    from .user import User


class Attachment(Base):
    __tablename__ = "attachments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    pbi_id: Mapped[str] = mapped_column(ForeignKey("pbis.id", ondelete="CASCADE"), nullable=False, index=True)
    pbi: Mapped["Pbi"] = relationship(back_populates="attachments")

    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)

    uploaded_by_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    uploaded_by: Mapped[Optional["User"]] = relationship()

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())

    def __repr__(self):
        return f'<Attachment {self.filename} pbi_id={self.pbi_id}>'

    def to_dict(self, download_url: Optional[str] = None):
        data = {
            'id': self.id,
            'pbi_id': self.pbi_id,
            'filename': self.filename,
            'storage_key': self.storage_key,
            'content_type': self.content_type,
            'size_bytes': self.size_bytes,
            'uploaded_by': {
                'id': self.uploaded_by.id,
                'name': self.uploaded_by.name,
            } if self.uploaded_by else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if download_url is not None:
            data['download_url'] = download_url
        return data
