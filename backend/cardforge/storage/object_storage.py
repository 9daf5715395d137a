"""
S3-compatible object storage client (Backblaze B2, Cloudflare R2, AWS S3).

Uses boto3 with the S3 API. Generated images are copied here from the
provider's short-lived URL so stored cards keep working.
"""
import asyncio
import logging
import time
from typing import Optional

import boto3
import httpx
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cardforge.config import settings
from cardforge.errors import UpstreamError
from cardforge.utils.logging import log_provider_failure, log_provider_request
from cardforge.utils.metrics import provider_failures_total, provider_requests_total
from cardforge.utils.retry import retry_idempotent

logger = logging.getLogger(__name__)

# Mapping of content types to file extensions
CONTENT_TYPE_EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/png': 'png',
    'image/webp': 'webp',
}


def extension_for(content_type: str) -> str:
    return CONTENT_TYPE_EXTENSIONS.get((content_type or "").split(";")[0].strip().lower(), "jpg")


class ObjectStorage:
    """
    S3-compatible client for durable image storage.

    Fails gracefully at construction if not configured; `upload_bytes`
    then raises UpstreamError.
    """

    name = "storage"

    def __init__(self, client=None, bucket: Optional[str] = None, public_base_url: Optional[str] = None):
        """
        Initialize the storage client with boto3.

        `client` may be injected (tests); otherwise one is built from settings.
        """
        self.bucket = bucket or settings.storage_bucket
        self.public_base_url = (public_base_url or settings.storage_public_base_url or "").rstrip("/")
        self._client = client

        if self._client is not None:
            return

        if not all([
            settings.storage_endpoint,
            settings.storage_access_key,
            settings.storage_secret_key
        ]):
            logger.warning(
                "Object storage not configured. "
                "Set STORAGE_ENDPOINT, STORAGE_ACCESS_KEY, and STORAGE_SECRET_KEY."
            )
            return

        try:
            self._client = boto3.client(
                's3',
                endpoint_url=settings.storage_endpoint,
                aws_access_key_id=settings.storage_access_key,
                aws_secret_access_key=settings.storage_secret_key,
                region_name=settings.storage_region,
                config=Config(
                    signature_version='s3v4',
                    s3={'addressing_style': 'path'},
                    connect_timeout=10,
                    read_timeout=settings.outbound_timeout_seconds,
                    retries={'max_attempts': 0},
                )
            )
            logger.info(f"Object storage client initialized for bucket: {self.bucket}")
        except BotoCoreError as e:
            logger.error(f"Failed to initialize object storage client: {e}")
            self._client = None

    @property
    def is_configured(self) -> bool:
        """Check if storage client is properly configured."""
        return self._client is not None

    def public_url(self, object_key: str) -> str:
        """Durable public URL of an object."""
        if self.public_base_url:
            return f"{self.public_base_url}/{object_key}"
        endpoint = (settings.storage_endpoint or "").rstrip("/")
        return f"{endpoint}/{self.bucket}/{object_key}"

    async def upload_bytes(self, object_key: str, data: bytes, content_type: str) -> str:
        """
        Upload a buffer and return its public URL.

        Not retried: the caller decides what to do on failure.

        Raises:
            UpstreamError: storage not configured or upload failed
        """
        if not self.is_configured:
            raise UpstreamError("Object storage is not configured", provider=self.name)

        start_time = time.time()
        provider_requests_total.labels(provider=self.name, operation="upload").inc()
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=object_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            provider_failures_total.labels(provider=self.name, operation="upload").inc()
            log_provider_failure(
                logger,
                provider=self.name,
                operation="upload",
                error=str(e),
                duration_ms=(time.time() - start_time) * 1000,
                object_key=object_key,
            )
            raise UpstreamError("Failed to store generated image", provider=self.name) from e

        log_provider_request(
            logger,
            provider=self.name,
            operation="upload",
            duration_ms=(time.time() - start_time) * 1000,
            object_key=object_key,
            size_bytes=len(data),
        )
        return self.public_url(object_key)


async def download_image(
    http_client: httpx.AsyncClient,
    url: str,
    attempts: Optional[int] = None,
    delay_seconds: Optional[float] = None,
) -> bytes:
    """
    Download an image (idempotent GET, retried with a fixed delay).

    Raises:
        UpstreamError: download failed after all attempts
    """
    async def fetch() -> bytes:
        response = await http_client.get(url, timeout=settings.outbound_timeout_seconds)
        response.raise_for_status()
        return response.content

    try:
        return await retry_idempotent(
            fetch,
            attempts=settings.outbound_retry_attempts if attempts is None else attempts,
            delay_seconds=settings.outbound_retry_delay_seconds if delay_seconds is None else delay_seconds,
            operation="image_download",
        )
    except httpx.TimeoutException as e:
        raise UpstreamError("Timed out downloading generated image", kind="timeout", provider="download") from e
    except httpx.HTTPError as e:
        raise UpstreamError(f"Failed to download generated image: {e}", provider="download") from e


# Lazily built shared instance (boto3 clients are thread-safe)
_object_storage: Optional[ObjectStorage] = None


def get_object_storage() -> ObjectStorage:
    """
    FastAPI dependency returning the shared ObjectStorage instance.
    """
    global _object_storage
    if _object_storage is None:
        _object_storage = ObjectStorage()
    return _object_storage
