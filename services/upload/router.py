"""
services/upload/router.py
Multipart uploads delegated to the media storage backend.
"""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status

from config.settings import settings
from services.upload.service import MediaStorage, get_media_storage, read_validated
from shared.middleware.auth import get_current_user
from shared.middleware.rate_limit import RateLimit
from shared.models.models import User
from shared.schemas.schemas import UploadResponse
from shared.utils.exceptions import AuthorizationError, NotFoundError, ValidationError
from shared.utils.pagination import ok

router = APIRouter(prefix="/upload", tags=["Uploads"], dependencies=[Depends(RateLimit("upload"))])


@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    storage: MediaStorage = Depends(get_media_storage),
):
    data = await read_validated(file)
    stored = await storage.upload(data, file.filename, str(current_user.id))
    return ok(UploadResponse(**stored).model_dump(by_alias=True), "File uploaded successfully")


@router.post("/multiple", status_code=status.HTTP_201_CREATED)
async def upload_multiple(
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    storage: MediaStorage = Depends(get_media_storage),
):
    if len(files) > settings.UPLOAD_MAX_FILES:
        raise ValidationError(f"At most {settings.UPLOAD_MAX_FILES} files per request")
    payloads = [(f.filename, await read_validated(f)) for f in files]
    stored = [await storage.upload(data, name, str(current_user.id)) for name, data in payloads]
    return ok(
        [UploadResponse(**s).model_dump(by_alias=True) for s in stored],
        f"{len(stored)} files uploaded successfully",
    )


@router.delete("/{public_id:path}")
async def delete_file(
    public_id: str,
    current_user: User = Depends(get_current_user),
    storage: MediaStorage = Depends(get_media_storage),
):
    """Files live under <folder>/<owner id>/, so only the owner can remove them."""
    if f"/{current_user.id}/" not in f"/{public_id}":
        raise AuthorizationError("You can only delete your own files")
    if not await storage.delete(public_id):
        raise NotFoundError("File not found")
    return ok(None, "File deleted successfully")
