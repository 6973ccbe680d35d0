"""Media host used for avatars and post thumbnails."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

from minio import Minio

from core import Settings

from .images import process_image_bytes
from .storage import delete_object, ensure_bucket, get_minio_client, put_object

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedImage:
    data: bytes
    content_type: str


class MediaHost(Protocol):
    async def prepare(self, data: bytes) -> PreparedImage:
        """Decode and re-encode an upload; raises ``ValueError`` for non-images."""
        ...

    async def upload(self, image: PreparedImage) -> str:
        """Store a prepared image and return the URL it can be fetched from."""
        ...

    async def delete(self, url: str) -> None:
        """Remove an image previously returned by :meth:`upload`."""
        ...


class MinioMediaHost:
    """Media host backed by a MinIO/S3 bucket.

    Uploads are re-encoded as JPEG at a fixed quality and stored under
    ``<folder>/<random>.jpg``. Public URLs are ``<base>/<bucket>/<key>``, so
    the object key for a deletion is recovered from the URL itself. The
    bucket is created with an anonymous-read policy on first use.
    """

    def __init__(
        self,
        *,
        bucket: str,
        public_base_url: str,
        folder: str,
        quality: int = 70,
        client_factory: Callable[[], Minio] = get_minio_client,
    ) -> None:
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.folder = folder.strip("/")
        self.quality = quality
        self._client_factory = client_factory
        self._bucket_ready = False

    @classmethod
    def from_settings(cls, config: Settings) -> "MinioMediaHost":
        return cls(
            bucket=config.minio_bucket,
            public_base_url=config.media_public_base_url,
            folder=config.media_folder,
            quality=config.image_quality,
        )

    def url_for(self, object_key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{object_key}"

    def object_key_from_url(self, url: str) -> str:
        prefix = f"{self.public_base_url}/{self.bucket}/"
        if not url.startswith(prefix) or len(url) == len(prefix):
            raise ValueError(f"URL is not served by this media host: {url}")
        return url[len(prefix):]

    def _store(self, object_key: str, image: PreparedImage) -> None:
        client = self._client_factory()
        if not self._bucket_ready:
            ensure_bucket(client, self.bucket)
            self._bucket_ready = True
        put_object(
            object_key,
            image.data,
            image.content_type,
            client=client,
            bucket_name=self.bucket,
        )

    async def prepare(self, data: bytes) -> PreparedImage:
        processed_bytes, content_type = await asyncio.to_thread(
            process_image_bytes,
            data,
            quality=self.quality,
        )
        return PreparedImage(data=processed_bytes, content_type=content_type)

    async def upload(self, image: PreparedImage) -> str:
        object_key = f"{self.folder}/{uuid4().hex}.jpg"
        await asyncio.to_thread(self._store, object_key, image)
        logger.info("Stored media object", extra={"object_key": object_key})
        return self.url_for(object_key)

    async def delete(self, url: str) -> None:
        object_key = self.object_key_from_url(url)
        await asyncio.to_thread(
            delete_object,
            object_key,
            self._client_factory(),
            self.bucket,
        )
        logger.info("Deleted media object", extra={"object_key": object_key})
