"""
Object storage for uploaded ID images.

S3 is used when CHECKIN_STORAGE_BUCKET is configured; otherwise files go to
Django's default storage under MEDIA_ROOT.
"""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from .errors import StorageError

logger = logging.getLogger(__name__)


class S3Storage:
    """Upload to an S3 bucket and hand out a download URL."""

    def __init__(self, bucket, region=None, public_base_url='', url_expiry=3600, client=None):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip('/')
        self.url_expiry = url_expiry
        self.client = client or boto3.client('s3', region_name=region)

    def upload(self, key, data, content_type):
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 upload of {key} failed: {e}") from e
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")
        return self.download_url(key)

    def download_url(self, key):
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=self.url_expiry,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Could not sign URL for {key}: {e}") from e


class MediaStorage:
    """Store under MEDIA_ROOT through Django's storage API."""

    def __init__(self, storage=None, public_url=''):
        self.storage = storage or default_storage
        self.public_url = public_url.rstrip('/')

    def upload(self, key, data, content_type):
        if self.storage.exists(key):
            self.storage.delete(key)
        try:
            name = self.storage.save(key, ContentFile(data))
        except OSError as e:
            raise StorageError(f"Saving {key} failed: {e}") from e
        logger.info(f"Stored {len(data)} bytes at {name}")
        url = self.storage.url(name)
        if self.public_url and url.startswith('/'):
            url = f"{self.public_url}{url}"
        return url


def get_storage():
    bucket = getattr(settings, 'CHECKIN_STORAGE_BUCKET', '')
    if bucket:
        return S3Storage(
            bucket,
            region=settings.AWS_REGION,
            public_base_url=settings.CHECKIN_STORAGE_PUBLIC_BASE_URL,
            url_expiry=settings.CHECKIN_STORAGE_URL_EXPIRY,
        )
    return MediaStorage(public_url=getattr(settings, 'CHECKIN_PUBLIC_URL', ''))
