"""
Attachment Service - presigned upload/download flow for PBI files.

Upload is two-step: request-upload validates the file and hands back a
storage key with a presigned PUT URL; confirm-upload records the metadata
once the client has pushed the bytes.
"""

import logging
import re
import time
from typing import Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import select

from models import db, Attachment, Pbi, User
from services.backlog_errors import NotFound, StorageError, ValidationError
from services.blob_store import get_blob_store
from utils.auth import ensure_client_access

logger = logging.getLogger(__name__)

UPLOAD_URL_EXPIRY_SECONDS = 300
DOWNLOAD_URL_EXPIRY_SECONDS = 3600
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024

ALLOWED_CONTENT_TYPES = frozenset({
    # Images
    'image/jpeg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/svg+xml',
    # Documents
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/plain',
    'text/markdown',
    # Archives
    'application/zip',
})


def max_file_size() -> int:
    return int(current_app.config.get('ATTACHMENT_MAX_BYTES', DEFAULT_MAX_FILE_SIZE))


def is_allowed_content_type(content_type: str) -> bool:
    return content_type in ALLOWED_CONTENT_TYPES


def is_allowed_file_size(size_bytes) -> bool:
    return isinstance(size_bytes, int) and not isinstance(size_bytes, bool) and 0 < size_bytes <= max_file_size()


def generate_storage_key(client_id: str, pbi_id: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """attachments/<client>/<pbi>/<epoch-ms>-<sanitized filename>"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    sanitized = re.sub(r'[^a-zA-Z0-9.-]', '_', filename)
    return f"attachments/{client_id}/{pbi_id}/{timestamp_ms}-{sanitized}"


def _require_store():
    store = get_blob_store()
    if store is None:
        raise StorageError("Attachment storage is not configured")
    return store


def _accessible_pbi(actor: User, pbi_id: str) -> Pbi:
    pbi = db.session.get(Pbi, pbi_id)
    if pbi is None:
        raise NotFound("PBI not found", context={'pbi_id': pbi_id})
    ensure_client_access(actor, pbi.client_id)
    return pbi


def _validate_file(filename, content_type, size_bytes):
    if not filename or not content_type or not size_bytes:
        raise ValidationError("filename, content_type, and size_bytes are required")
    for field, value in (('filename', filename), ('content_type', content_type)):
        if not isinstance(value, str):
            raise ValidationError(f"{field} must be a string", context={'field': field})
    if not is_allowed_content_type(content_type):
        raise ValidationError("File type not allowed", context={'content_type': content_type})
    if not is_allowed_file_size(size_bytes):
        raise ValidationError(
            f"File too large. Maximum size is {max_file_size() // (1024 * 1024)}MB",
            context={'size_bytes': size_bytes},
        )


def request_upload(actor: User, pbi_id: str, filename: str, content_type: str, size_bytes: int) -> Dict:
    pbi = _accessible_pbi(actor, pbi_id)
    _validate_file(filename, content_type, size_bytes)
    store = _require_store()

    key = generate_storage_key(pbi.client_id, pbi.id, filename)
    return {
        'upload_url': store.upload_url(key, content_type, UPLOAD_URL_EXPIRY_SECONDS),
        'storage_key': key,
        'expires_in': UPLOAD_URL_EXPIRY_SECONDS,
    }


def confirm_upload(actor: User, pbi_id: str, filename: str, content_type: str,
                   size_bytes: int, storage_key: str) -> Dict:
    pbi = _accessible_pbi(actor, pbi_id)
    _validate_file(filename, content_type, size_bytes)
    if not storage_key or not isinstance(storage_key, str):
        raise ValidationError("storage_key is required")
    # Keys are minted per PBI; refuse one pointing at another client's area
    if not storage_key.startswith(f"attachments/{pbi.client_id}/{pbi.id}/"):
        raise ValidationError("storage_key does not belong to this PBI")
    store = _require_store()

    attachment = Attachment(
        pbi_id=pbi.id,
        filename=filename,
        storage_key=storage_key,
        content_type=content_type,
        size_bytes=size_bytes,
        uploaded_by_id=actor.id,
    )
    db.session.add(attachment)
    db.session.commit()

    logger.info(f"Attachment {attachment.id} recorded for PBI {pbi.id} ({size_bytes} bytes)")
    return attachment.to_dict(download_url=store.download_url(storage_key, DOWNLOAD_URL_EXPIRY_SECONDS))


def list_attachments(actor: User, pbi_id: str) -> List[Dict]:
    pbi = _accessible_pbi(actor, pbi_id)
    store = _require_store()
    attachments = db.session.scalars(
        select(Attachment).where(Attachment.pbi_id == pbi.id).order_by(Attachment.created_at.desc())
    )
    return [
        attachment.to_dict(download_url=store.download_url(attachment.storage_key, DOWNLOAD_URL_EXPIRY_SECONDS))
        for attachment in attachments
    ]


def get_attachment(actor: User, attachment_id: str) -> Dict:
    attachment = db.session.get(Attachment, attachment_id)
    if attachment is None:
        raise NotFound("Attachment not found", context={'attachment_id': attachment_id})
    ensure_client_access(actor, attachment.pbi.client_id)
    store = _require_store()
    return attachment.to_dict(download_url=store.download_url(attachment.storage_key, DOWNLOAD_URL_EXPIRY_SECONDS))


def delete_attachment(actor: User, attachment_id: str) -> None:
    """Remove the record; the blob is deleted best-effort afterwards."""
    attachment = db.session.get(Attachment, attachment_id)
    if attachment is None:
        raise NotFound("Attachment not found", context={'attachment_id': attachment_id})
    ensure_client_access(actor, attachment.pbi.client_id)

    storage_key = attachment.storage_key
    db.session.delete(attachment)
    db.session.commit()

    delete_blobs([storage_key])


def delete_blobs(storage_keys: Iterable[str]) -> int:
    """
    Best-effort blob cleanup after records are gone. Failures are logged and
    not retried; returns how many deletions succeeded.
    """
    store = get_blob_store()
    if store is None:
        return 0

    deleted = 0
    for key in storage_keys:
        try:
            store.delete(key)
            deleted += 1
        except Exception as e:
            logger.error(f"Failed to delete blob {key}: {e}")
    return deleted
