"""
S3 Blob Store
Presigned PUT/GET URLs and deletes against one S3 bucket via boto3.

Credentials come from the usual boto3 chain (environment, shared config,
instance or task role); nothing here handles keys directly.
"""

import logging
from typing import Optional

import boto3

from services.blob_store import BlobStore

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'eu-west-2'
DEFAULT_BUCKET = 'kavostack-backlog-attachments'


class S3BlobStore(BlobStore):

    def __init__(self, bucket: str = DEFAULT_BUCKET, region: str = DEFAULT_REGION, client=None):
        if not bucket:
            raise ValueError("S3 bucket name is required")
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client('s3', region_name=region)
        logger.info(f"S3 blob store ready: bucket={bucket} region={region}")

    def upload_url(self, key: str, content_type: str, expires_in: int) -> str:
        return self.client.generate_presigned_url(
            'put_object',
            Params={'Bucket': self.bucket, 'Key': key, 'ContentType': content_type},
            ExpiresIn=expires_in,
        )

    def download_url(self, key: str, expires_in: int) -> str:
        return self.client.generate_presigned_url(
            'get_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=expires_in,
        )

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.debug(f"Deleted s3://{self.bucket}/{key}")


def s3_blob_store_from_config(config) -> Optional[S3BlobStore]:
    """Build a store from S3_BUCKET / S3_REGION, or None when no bucket is configured."""
    bucket = config.get('S3_BUCKET')
    if not bucket:
        return None
    return S3BlobStore(bucket=bucket, region=config.get('S3_REGION') or DEFAULT_REGION)
