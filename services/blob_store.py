"""
Blob store seam for attachment bytes.

Object storage is an external collaborator: create_app registers a BlobStore
on app.extensions['blob_store'], either the one it was given or an
S3BlobStore built from S3_BUCKET / S3_REGION. Nothing in this service reads
or writes file contents itself; clients move bytes through presigned URLs.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from flask import current_app

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Interface the attachment service expects from object storage."""

    @abstractmethod
    def upload_url(self, key: str, content_type: str, expires_in: int) -> str:
        """Presigned PUT URL for `key`, valid for `expires_in` seconds."""

    @abstractmethod
    def download_url(self, key: str, expires_in: int) -> str:
        """Presigned GET URL for `key`."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object; raises when the store refuses."""


def get_blob_store() -> Optional[BlobStore]:
    """The store registered on the current app, or None when attachments are not configured."""
    store = current_app.extensions.get('blob_store')
    if store is None:
        logger.warning("Blob store not configured - attachment storage unavailable")
    return store
