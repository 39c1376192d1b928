from fastapi import APIRouter, Depends, UploadFile, File, Form, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import require_onboarding
from ...models.profile import Profile
from ...models.document import DocumentCategory
from ...services.document_service import DocumentService
from ...services.storage_service import StorageService, get_storage
from ...schemas.document import (
    DocumentResponse, DocumentUpdate, DownloadUrl,
    FolderCreate, FolderUpdate, FolderResponse,
    ShareCreate, ShareResponse, SharedDocument
)

router = APIRouter(prefix="/documents", tags=["Documents"])

@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    category: Optional[str] = Query(default=None),
    folder_id: Optional[int] = Query(default=None),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """The user's documents, newest first. ``category=all`` lists everything."""
    return DocumentService(db, storage).get_user_documents(profile.id, category, folder_id)

@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    title: str = Form(...),
    category: DocumentCategory = Form(DocumentCategory.OTHER),
    notes: Optional[str] = Form(None),
    folder_id: Optional[int] = Form(None),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    data = await file.read()
    return DocumentService(db, storage).upload_document(
        profile,
        file.filename,
        file.content_type,
        data,
        title,
        category,
        notes,
        folder_id
    )

@router.get("/search", response_model=List[DocumentResponse])
async def search_documents(
    q: str = Query(default="", max_length=100),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """Search own and shared documents by title, notes or category."""
    return DocumentService(db, storage).search_documents(q, profile.id)

@router.get("/shared", response_model=List[SharedDocument])
async def shared_with_me(
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).get_shared_with_me(profile.id)

# Folders

@router.get("/folders", response_model=List[FolderResponse])
async def list_folders(
    parent_id: Optional[int] = Query(default=None),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).get_folders(profile.id, parent_id)

@router.post("/folders", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    payload: FolderCreate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).create_folder(profile, payload)

@router.patch("/folders/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: int,
    patch: FolderUpdate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).update_folder(folder_id, profile, patch)

@router.delete("/folders/{folder_id}")
async def delete_folder(
    folder_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """Delete a folder; what it held moves up one level."""
    DocumentService(db, storage).delete_folder(folder_id, profile)
    return {"message": "Folder deleted successfully"}

# Single documents

@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).get_document(document_id, profile)

@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: int,
    patch: DocumentUpdate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).update_document(document_id, profile, patch)

@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    DocumentService(db, storage).delete_document(document_id, profile)
    return {"message": "Document deleted successfully"}

@router.get("/{document_id}/download-url", response_model=DownloadUrl)
async def get_download_url(
    document_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """Signed, time-limited link to the file."""
    return DocumentService(db, storage).get_download_url(document_id, profile)

# Sharing

@router.get("/{document_id}/shares", response_model=List[ShareResponse])
async def list_shares(
    document_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    return DocumentService(db, storage).list_shares(document_id, profile)

@router.post("/{document_id}/shares", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
async def share_document(
    document_id: int,
    target: ShareCreate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """Share by recipient id or email."""
    return DocumentService(db, storage).share_document(document_id, profile, target)

@router.delete("/{document_id}/shares/{user_id}")
async def revoke_share(
    document_id: int,
    user_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    DocumentService(db, storage).revoke_share(document_id, profile, user_id)
    return {"message": "Access revoked"}
