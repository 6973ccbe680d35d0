"""Upload reading and image re-encoding helpers."""

from __future__ import annotations

from io import BytesIO

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

JPEG_CONTENT_TYPE = "image/jpeg"
MAX_IMAGE_DIMENSION = 2048
READ_CHUNK_SIZE = 64 * 1024


class UploadTooLargeError(ValueError):
    """Raised when an upload exceeds the configured byte limit."""


async def read_upload_file(upload: UploadFile, max_bytes: int) -> bytes:
    """Read an upload fully, refusing to buffer more than ``max_bytes``."""
    buffer = bytearray()
    while True:
        chunk = await upload.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise UploadTooLargeError(f"File too big. Should be less than {max_bytes} bytes.")
    return bytes(buffer)


def process_image_bytes(data: bytes, *, quality: int = 70) -> tuple[bytes, str]:
    """Decode, normalize orientation, downscale and re-encode as JPEG."""
    try:
        with Image.open(BytesIO(data)) as probe:
            probe.verify()
        with Image.open(BytesIO(data)) as image:
            image = ImageOps.exif_transpose(image)
            if image.mode != "RGB":
                image = image.convert("RGB")
            image.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION))
            output = BytesIO()
            image.save(output, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Invalid image file.") from exc
    return output.getvalue(), JPEG_CONTENT_TYPE
