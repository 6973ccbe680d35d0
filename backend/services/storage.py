"""Thin wrappers around the MinIO client used by the media host."""

from __future__ import annotations

import json
from functools import lru_cache
from io import BytesIO

from minio import Minio
from minio.error import S3Error

from core import settings

BUCKET_RACE_CODES = frozenset({"BucketAlreadyOwnedByYou", "BucketAlreadyExists"})
MISSING_OBJECT_CODES = frozenset({"NoSuchKey", "NoSuchObject", "ResourceNotFound"})


def public_read_policy(bucket_name: str) -> str:
    """Bucket policy letting anonymous clients GET objects."""
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": ["*"]},
                    "Action": ["s3:GetObject"],
                    "Resource": [f"arn:aws:s3:::{bucket_name}/*"],
                }
            ],
        }
    )


@lru_cache
def get_minio_client() -> Minio:
    """Return the process-wide MinIO client built from settings."""
    return Minio(
        settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_secure,
    )


def ensure_bucket(client: Minio | None = None, bucket_name: str | None = None) -> None:
    """Create ``bucket_name`` readable by anyone unless it already exists."""
    client = client or get_minio_client()
    bucket_name = bucket_name or settings.minio_bucket
    if client.bucket_exists(bucket_name):  # pragma: no cover - network call
        return
    try:
        client.make_bucket(bucket_name)  # pragma: no cover - network call
    except S3Error as exc:
        # Another worker created it between the two calls.
        if exc.code not in BUCKET_RACE_CODES:
            raise
        return
    client.set_bucket_policy(bucket_name, public_read_policy(bucket_name))


def put_object(
    object_key: str,
    data: bytes,
    content_type: str,
    *,
    client: Minio | None = None,
    bucket_name: str | None = None,
) -> None:
    client = client or get_minio_client()
    client.put_object(
        bucket_name or settings.minio_bucket,
        object_key,
        data=BytesIO(data),
        length=len(data),
        content_type=content_type,
    )


def delete_object(
    object_key: str,
    client: Minio | None = None,
    bucket_name: str | None = None,
) -> None:
    """Remove ``object_key``; a key that is already gone is not an error."""
    client = client or get_minio_client()
    try:
        client.remove_object(bucket_name or settings.minio_bucket, object_key)
    except S3Error as exc:
        if exc.code not in MISSING_OBJECT_CODES:
            raise
