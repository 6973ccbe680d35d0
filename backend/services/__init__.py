"""Business logic services."""

from .images import (
    JPEG_CONTENT_TYPE,
    MAX_IMAGE_DIMENSION,
    UploadTooLargeError,
    process_image_bytes,
    read_upload_file,
)
from .mailer import Mailer, SmtpMailer
from .media import MediaHost, MinioMediaHost, PreparedImage
from .storage import (
    delete_object,
    ensure_bucket,
    get_minio_client,
    put_object,
)

__all__ = [
    "get_minio_client",
    "ensure_bucket",
    "put_object",
    "delete_object",
    "process_image_bytes",
    "read_upload_file",
    "MAX_IMAGE_DIMENSION",
    "JPEG_CONTENT_TYPE",
    "UploadTooLargeError",
    "MediaHost",
    "MinioMediaHost",
    "PreparedImage",
    "Mailer",
    "SmtpMailer",
]
