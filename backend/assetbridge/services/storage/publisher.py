"""Object-store publisher for pipeline artifacts.

Talks to any S3-compatible endpoint (GCS interoperability, AWS S3, MinIO,
R2) through boto3. Uploads overwrite in place; the returned URL depends only
on the bucket and key, so republishing the same key yields the same URL.
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from assetbridge.services.config import (
    CACHE_CONTROL,
    DEFAULT_STORAGE_PUBLIC_HOST,
    Settings,
    StorageCredentials,
    get_settings,
)
from assetbridge.services.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def build_s3_client(credentials: StorageCredentials) -> Any:
    """Create a boto3 S3 client from a decoded credential document."""
    return boto3.client(
        "s3",
        endpoint_url=credentials.endpoint_url or None,
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        region_name=credentials.region,
        config=Config(
            signature_version="s3v4",
            # One attempt only: failures are reported, not retried
            retries={"max_attempts": 1, "mode": "standard"},
            s3={"addressing_style": "path"},
        ),
    )


class StoragePublisher:
    """Uploads byte buffers under exact keys and returns public URLs."""

    def __init__(
        self,
        bucket: str,
        client: Any,
        public_host: str = DEFAULT_STORAGE_PUBLIC_HOST,
    ) -> None:
        self.bucket = bucket
        self.public_host = public_host
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoragePublisher":
        return cls(
            bucket=settings.bucket_name,
            client=build_s3_client(settings.storage_credentials),
            public_host=settings.storage_public_host,
        )

    def public_url(self, key: str) -> str:
        return f"https://{self.public_host}/{self.bucket}/{key}"

    async def publish(
        self,
        key: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> str:
        """Upload *data* under *key* and return its public URL.

        Raises StorageError carrying the underlying client message.
        """
        if not key:
            raise StorageError("Failed to upload file: empty object key")

        try:
            # boto3 is blocking; keep the event loop free during the upload
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=CACHE_CONTROL,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Upload of %s to bucket %s failed", key, self.bucket, exc_info=True)
            raise StorageError(f"Failed to upload file to storage: {exc}") from exc

        url = self.public_url(key)
        logger.info("Published %s (%d bytes, %s)", url, len(data), content_type)
        return url


@lru_cache(maxsize=1)
def get_publisher() -> StoragePublisher:
    """Return the process-wide publisher built from settings."""
    return StoragePublisher.from_settings(get_settings())
