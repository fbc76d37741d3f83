"""Blob storage backends for decoded notice attachments."""

from __future__ import annotations

import io
import re
from pathlib import Path
from typing import Callable, Protocol
from urllib.parse import urlparse
from uuid import uuid4

import structlog
from minio import Minio
from minio.error import S3Error

from ..core.clock import utc_now
from ..core.config import Settings

logger = structlog.get_logger()

_unsafe_filename_chars = re.compile(r"[^A-Za-z0-9._-]+")


class StorageConfigurationError(RuntimeError):
    """Raised when storage configuration is invalid."""


class BlobStorageError(RuntimeError):
    """Raised when a blob could not be written or removed."""


class BlobStorage(Protocol):
    def store(self, data: bytes, filename: str, *, content_type: str | None = None) -> str:
        """Persist ``data`` and return a locator for it."""
        ...

    def delete(self, locator: str) -> None:
        """Remove a blob previously returned by ``store``."""
        ...


def generate_object_key(filename: str) -> str:
    """Return a unique object key that keeps the declared file name readable."""

    safe_name = _unsafe_filename_chars.sub("_", Path(filename).name).strip("._") or "upload"
    now = utc_now()
    return f"notices/{now:%Y/%m}/{uuid4()}/{safe_name}"


class LocalBlobStorage:
    """Writes attachments below a directory on the local filesystem."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def store(self, data: bytes, filename: str, *, content_type: str | None = None) -> str:
        object_key = generate_object_key(filename)
        target = self._root / object_key
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise BlobStorageError(f"Unable to write '{object_key}': {exc}") from exc
        logger.info("blob_storage.stored", backend="local", object_key=object_key, size=len(data))
        return str(target)

    def delete(self, locator: str) -> None:
        try:
            Path(locator).unlink(missing_ok=True)
        except OSError as exc:
            raise BlobStorageError(f"Unable to remove '{locator}': {exc}") from exc

    def read(self, locator: str) -> bytes:
        return Path(locator).read_bytes()


class MinioBlobStorage:
    """Stores attachments in an S3-compatible bucket through MinIO."""

    def __init__(self, *, client: Minio, bucket: str) -> None:
        self._client = client
        self._bucket = bucket
        self._ensure_bucket()

    @property
    def bucket(self) -> str:
        return self._bucket

    def _ensure_bucket(self) -> None:
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except S3Error as exc:  # pragma: no cover - network side effect
            raise StorageConfigurationError(
                f"Unable to ensure bucket '{self._bucket}': {exc}"
            ) from exc

    def store(self, data: bytes, filename: str, *, content_type: str | None = None) -> str:
        object_key = generate_object_key(filename)
        try:
            self._client.put_object(
                self._bucket,
                object_key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type or "application/octet-stream",
            )
        except S3Error as exc:
            raise BlobStorageError(f"Unable to upload '{object_key}': {exc}") from exc
        logger.info("blob_storage.stored", backend="minio", object_key=object_key, size=len(data))
        return self.object_uri(object_key)

    def delete(self, locator: str) -> None:
        prefix = f"s3://{self._bucket}/"
        if not locator.startswith(prefix):
            raise BlobStorageError(f"'{locator}' is not in bucket '{self._bucket}'")
        try:
            self._client.remove_object(self._bucket, locator[len(prefix):])
        except S3Error as exc:
            raise BlobStorageError(f"Unable to remove '{locator}': {exc}") from exc

    def object_uri(self, object_key: str) -> str:
        """Return an s3:// style URI for the provided object key."""

        return f"s3://{self._bucket}/{object_key}"


class DeferredBlobStorage:
    """Builds the configured backend on first use.

    Configuration problems surface as ``BlobStorageError`` from ``store``,
    so they are only reported for requests that actually reach a write.
    A failed build is retried on the next call.
    """

    def __init__(self, factory: Callable[[], BlobStorage]) -> None:
        self._factory = factory
        self._backend: BlobStorage | None = None

    def _resolve(self) -> BlobStorage:
        if self._backend is None:
            try:
                self._backend = self._factory()
            except StorageConfigurationError as exc:
                logger.error("blob_storage.misconfigured", error=str(exc))
                raise BlobStorageError(str(exc)) from exc
        return self._backend

    def store(self, data: bytes, filename: str, *, content_type: str | None = None) -> str:
        return self._resolve().store(data, filename, content_type=content_type)

    def delete(self, locator: str) -> None:
        self._resolve().delete(locator)


def build_blob_storage(settings: Settings) -> BlobStorage:
    """Use MinIO when S3 settings are complete, else the local media root."""

    s3_values = [
        settings.s3_endpoint_url,
        settings.s3_bucket,
        settings.s3_access_key,
        settings.s3_secret_key,
    ]
    if not any(s3_values):
        return LocalBlobStorage(settings.media_root)
    if not all(s3_values):
        raise StorageConfigurationError("S3/MinIO environment variables are not fully set")

    parsed = urlparse(str(settings.s3_endpoint_url))
    secure = (
        settings.s3_secure
        if settings.s3_secure is not None
        else parsed.scheme == "https"
    )
    client = Minio(
        parsed.netloc,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        secure=secure,
        region=settings.s3_region,
    )
    return MinioBlobStorage(client=client, bucket=str(settings.s3_bucket))
