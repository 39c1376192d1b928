import os
import logging
from typing import List, Optional

from fastapi import HTTPException, status

from ..core.config import settings
from ..core.security import create_storage_token, verify_token

logger = logging.getLogger(__name__)

DOCUMENTS_BUCKET = "documents"
AVATARS_BUCKET = "avatars"
BUCKETS = (DOCUMENTS_BUCKET, AVATARS_BUCKET)
# Avatars are served without a signature
PUBLIC_BUCKETS = (AVATARS_BUCKET,)


class StorageService:
    """File storage on local disk, organised in buckets."""

    def __init__(self, root: Optional[str] = None):
        self.root = root or settings.STORAGE_DIR
        for bucket in BUCKETS:
            os.makedirs(os.path.join(self.root, bucket), exist_ok=True)

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        full_path = self._resolve(bucket, path)
        if os.path.exists(full_path):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A file already exists at that path"
            )

        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "wb") as f:
            f.write(data)

        logger.info(f"Stored {len(data)} bytes at {bucket}/{path}")
        return path

    def remove(self, bucket: str, paths: List[str]):
        """Remove objects. Missing objects are ignored."""
        for path in paths:
            full_path = self._resolve(bucket, path)
            if os.path.exists(full_path):
                os.remove(full_path)

    def exists(self, bucket: str, path: str) -> bool:
        return os.path.isfile(self._resolve(bucket, path))

    def open_path(self, bucket: str, path: str) -> str:
        full_path = self._resolve(bucket, path)
        if not os.path.isfile(full_path):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="File not found"
            )
        return full_path

    def create_signed_url(self, bucket: str, path: str, expires_in: Optional[int] = None) -> str:
        expires_in = expires_in or settings.SIGNED_URL_EXPIRE_SECONDS
        token = create_storage_token(f"{bucket}/{path}", expires_in)
        return f"{settings.STORAGE_BASE_URL}/sign/{bucket}/{path}?token={token}"

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{settings.STORAGE_BASE_URL}/public/{bucket}/{path}"

    def verify_signature(self, bucket: str, path: str, token: str) -> bool:
        payload = verify_token(token)
        return bool(
            payload
            and payload.token_type == "storage"
            and payload.path == f"{bucket}/{path}"
        )

    def _resolve(self, bucket: str, path: str) -> str:
        if bucket not in BUCKETS:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Unknown storage bucket"
            )

        parts = path.replace("\\", "/").split("/")
        if not path or path.startswith("/") or any(p in ("", ".", "..") for p in parts):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid storage path"
            )
        return os.path.join(self.root, bucket, *parts)


def get_storage() -> StorageService:
    """Storage dependency."""
    return StorageService()
