import io
import logging
import threading
from functools import lru_cache
from urllib.parse import quote

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from .errors import UploadFailed

logger = logging.getLogger(__name__)


def get_s3_client():
    """
    SDK client for server-side upload/download.
    """
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


def public_base_url() -> str:
    if settings.MEDIA_CDN_BASE_URL:
        return settings.MEDIA_CDN_BASE_URL
    return f"{settings.S3_PUBLIC_ENDPOINT.rstrip('/')}/{settings.S3_BUCKET}"


class UploadProgress:
    """
    boto3 transfer callback turning byte deltas into a 0-100 percentage.

    Multipart uploads report from several threads, hence the lock. The value
    passed to ``on_progress`` never decreases.
    """

    def __init__(self, total_bytes: int, on_progress):
        self._total = total_bytes
        self._on_progress = on_progress
        self._seen = 0
        self._last = -1
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int):
        with self._lock:
            self._seen += bytes_amount
            percent = 100 if self._total <= 0 else min(100, int(self._seen * 100 / self._total))
            self._report(percent)

    def finish(self):
        with self._lock:
            self._report(100)

    def _report(self, percent: int):
        if percent > self._last:
            self._last = percent
            self._on_progress(percent)


class ObjectStore:
    """Bucket-scoped access to S3/MinIO for the media pipeline."""

    def __init__(self, client=None, bucket: str | None = None, base_url: str | None = None):
        self._client = client
        self.bucket = bucket or settings.S3_BUCKET
        self.base_url = (base_url or public_base_url()).rstrip("/")

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str | None = None,
        metadata: dict | None = None,
        on_progress=None,
    ) -> str:
        """
        Upload bytes to ``path`` and return the path. Any SDK or transport error
        surfaces as UploadFailed with the original exception chained.
        """
        extra = {
            "ContentType": content_type,
            "CacheControl": cache_control or settings.MEDIA_CACHE_CONTROL,
        }
        if metadata:
            # S3 user metadata must be ASCII.
            extra["Metadata"] = {k: quote(str(v), safe=" ") for k, v in metadata.items()}

        progress = UploadProgress(len(data), on_progress) if on_progress else None
        try:
            self.client.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                path,
                ExtraArgs=extra,
                Callback=progress,
                Config=TransferConfig(multipart_threshold=8 * 1024 * 1024),
            )
        except (BotoCoreError, ClientError, S3UploadFailedError) as exc:
            logger.warning("Upload of %s failed: %s", path, exc)
            raise UploadFailed(path, exc) from exc

        if progress:
            progress.finish()
        return path

    def download_url(self, path: str) -> str:
        """Durable public URL; paths never change content so it can be cached forever."""
        return f"{self.base_url}/{quote(path, safe='/')}"

    def download_to(self, path: str, dest) -> None:
        self.client.download_file(self.bucket, path, str(dest))

    def delete(self, path: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=path)


@lru_cache(maxsize=1)
def get_object_store() -> ObjectStore:
    return ObjectStore()
