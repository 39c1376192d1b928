from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
import logging

from ...core.security import AuthorizationError
from ...services.storage_service import StorageService, get_storage, AVATARS_BUCKET
from ...services.profile_service import AVATAR_TYPES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storage", tags=["Storage"])

@router.get("/sign/{bucket}/{path:path}")
async def download_signed(
    bucket: str,
    path: str,
    token: str = Query(...),
    storage: StorageService = Depends(get_storage)
):
    """Serve a stored object behind a signed URL."""
    if not storage.verify_signature(bucket, path, token):
        logger.warning(f"Rejected storage signature for {bucket}/{path}")
        raise AuthorizationError("Invalid or expired download link")

    return FileResponse(storage.open_path(bucket, path))

@router.get("/public/avatars/{path:path}")
async def download_avatar(
    path: str,
    storage: StorageService = Depends(get_storage)
):
    """Public avatar images. Anything that is not a known image type is not served."""
    media_types = {ext: content_type for content_type, ext in AVATAR_TYPES.items()}
    media_type = media_types.get(path.rsplit(".", 1)[-1].lower())
    if media_type is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found"
        )

    return FileResponse(
        storage.open_path(AVATARS_BUCKET, path),
        media_type=media_type,
        headers={"X-Content-Type-Options": "nosniff"}
    )
