"""Serves stored attachments back by their public URL."""

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

import config
from services import storage

router = APIRouter()


@router.get("/storage/{bucket}/{storage_key:path}")
async def get_stored_file(bucket: str, storage_key: str):
    """
    Download an attachment.

    Attachment URLs are unguessable (user id, item id and a millisecond
    timestamp), so they are served without a bearer token like public
    bucket links.
    """
    if bucket != config.settings.STORAGE_BUCKET:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket not found")
    try:
        path = storage.resolve_path(storage_key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path)
