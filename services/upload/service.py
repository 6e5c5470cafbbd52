"""
services/upload/service.py
Media storage on Cloudinary. The SDK is synchronous, so calls run in
the threadpool. Any SDK failure surfaces as StorageError (502).
"""

import logging
from typing import Optional

import cloudinary
import cloudinary.uploader
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from config.settings import settings
from shared.utils.exceptions import StorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "video/mp4",
    "video/quicktime",
    "application/pdf",
}


class MediaStorage:
    """Thin wrapper around the Cloudinary uploader."""

    def __init__(self, folder: str = settings.CLOUDINARY_FOLDER):
        self.folder = folder
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    async def upload(self, data: bytes, filename: Optional[str], owner_id: str) -> dict:
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                data,
                folder=f"{self.folder}/{owner_id}",
                resource_type="auto",
                use_filename=bool(filename),
                filename_override=filename,
            )
        except Exception as e:
            logger.error(f"Cloudinary upload failed for {filename}: {e}")
            raise StorageError("Failed to upload file to storage")
        return {
            "url": result["secure_url"],
            "public_id": result["public_id"],
            "original_name": filename,
            "size": result.get("bytes", len(data)),
            "format": result.get("format"),
        }

    async def delete(self, public_id: str) -> bool:
        try:
            result = await run_in_threadpool(cloudinary.uploader.destroy, public_id)
        except Exception as e:
            logger.error(f"Cloudinary delete failed for {public_id}: {e}")
            raise StorageError("Failed to delete file from storage")
        return result.get("result") == "ok"


def get_media_storage() -> MediaStorage:
    return MediaStorage()


async def read_validated(file: UploadFile, max_bytes: int = settings.UPLOAD_MAX_BYTES) -> bytes:
    """Read an upload, enforcing the content-type allowlist and size cap."""
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(f"Unsupported file type: {file.content_type}")
    data = await file.read(max_bytes + 1)
    await file.close()
    if not data:
        raise ValidationError("Empty file")
    if len(data) > max_bytes:
        raise ValidationError(f"File exceeds {max_bytes // (1024 * 1024)}MB limit")
    return data
