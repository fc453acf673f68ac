"""
Cover image storage.

``CoverImageManager`` validates an upload, stores it under a generated name
and hands back the relative path saved on the book. Blob storage is either
the local filesystem (dev) or S3 (LocalStack in dev, real AWS in prod).
"""

from __future__ import annotations

import uuid
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Optional, Protocol

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from tenacity import retry, stop_after_attempt, wait_exponential

from bookstore.config import get_settings
from bookstore.errors import ValidationError

logger = structlog.get_logger()

ALLOWED_EXTENSIONS = frozenset({".jpeg", ".jpg", ".png", ".gif"})
ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif"})


class MediaStorage(Protocol):
    async def save(self, name: str, data: bytes, content_type: str) -> None: ...

    async def delete(self, name: str) -> bool: ...


class LocalMediaStorage:
    """Stores files in a single directory on local disk."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _write(self, name: str, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / name).write_bytes(data)

    def _remove(self, name: str) -> bool:
        try:
            (self.root / name).unlink()
        except FileNotFoundError:
            return False
        return True

    async def save(self, name: str, data: bytes, content_type: str) -> None:
        await run_in_threadpool(self._write, name, data)

    async def delete(self, name: str) -> bool:
        return await run_in_threadpool(self._remove, name)


class S3MediaStorage:
    """Stores files as objects under ``prefix/`` in an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "books",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self._region = region
        self._endpoint_url = endpoint_url
        self._client = None

    def _get_client(self):
        """Create an S3 client, routing to LocalStack when an endpoint is set."""
        if self._client is None:
            import boto3

            kwargs = {"region_name": self._region}
            if self._endpoint_url:
                kwargs["endpoint_url"] = self._endpoint_url
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=5), reraise=True)
    def _put(self, name: str, data: bytes, content_type: str) -> None:
        self._get_client().put_object(
            Bucket=self.bucket, Key=self._key(name), Body=data, ContentType=content_type
        )

    @retry(stop=stop_after_attempt(3), wait=wait_exponential(multiplier=1, min=1, max=5), reraise=True)
    def _remove(self, name: str) -> bool:
        # S3 treats deleting a missing key as success
        self._get_client().delete_object(Bucket=self.bucket, Key=self._key(name))
        return True

    async def save(self, name: str, data: bytes, content_type: str) -> None:
        await run_in_threadpool(self._put, name, data, content_type)

    async def delete(self, name: str) -> bool:
        return await run_in_threadpool(self._remove, name)


class CoverImageManager:
    def __init__(
        self,
        storage: MediaStorage,
        url_prefix: str = "/uploads/books",
        max_bytes: int = 10 * 1024 * 1024,
    ):
        self.storage = storage
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def _validate_type(self, upload: UploadFile) -> str:
        extension = PurePosixPath(upload.filename or "").suffix.lower()
        content_type = (upload.content_type or "").split(";")[0].strip().lower()
        if extension not in ALLOWED_EXTENSIONS or content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif)")
        return extension

    async def attach(self, upload: UploadFile) -> str:
        """Validate and store ``upload``; return the path to save on the book."""
        extension = self._validate_type(upload)

        too_large = ValidationError(f"Cover image must be at most {self.max_bytes} bytes")
        if upload.size is not None and upload.size > self.max_bytes:
            raise too_large
        data = await upload.read(self.max_bytes + 1)
        if len(data) > self.max_bytes:
            raise too_large

        # Never derived from the client's filename
        name = f"book-{uuid.uuid4().hex}{extension}"
        await self.storage.save(name, data, upload.content_type or "application/octet-stream")
        logger.info("cover_image_stored", name=name, size=len(data))
        return f"{self.url_prefix}/{name}"

    async def detach(self, cover_path: Optional[str]) -> None:
        """Best-effort removal; never raises."""
        if not cover_path:
            return
        name = PurePosixPath(cover_path).name
        try:
            removed = await self.storage.delete(name)
        except Exception as e:
            logger.warning("cover_image_cleanup_failed", path=cover_path, error=str(e))
            return
        if not removed:
            logger.info("cover_image_already_absent", path=cover_path)


@lru_cache()
def get_cover_manager() -> CoverImageManager:
    settings = get_settings()
    if settings.media_storage_type == "s3":
        storage: MediaStorage = S3MediaStorage(
            bucket=settings.aws_s3_bucket,
            prefix="books",
            region=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
        )
    else:
        storage = LocalMediaStorage(settings.media_root)
    return CoverImageManager(
        storage,
        url_prefix=settings.media_url_prefix,
        max_bytes=settings.max_cover_bytes,
    )
