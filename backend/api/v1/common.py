"""Response models and upload helpers shared by the v1 routers."""

from __future__ import annotations

from fastapi import UploadFile
from pydantic import BaseModel

from core import PayloadTooLarge, settings
from services import UploadTooLargeError, read_upload_file
from services.schemas import ImageUpload


class MessageResponse(BaseModel):
    message: str


async def read_image(upload: UploadFile | None) -> ImageUpload | None:
    """Buffer an optional multipart image, capped at ``upload_max_bytes``."""
    if upload is None:
        return None
    try:
        data = await read_upload_file(upload, settings.upload_max_bytes)
    except UploadTooLargeError as exc:
        raise PayloadTooLarge(str(exc)) from exc
    return ImageUpload(data=data, filename=upload.filename, content_type=upload.content_type)
