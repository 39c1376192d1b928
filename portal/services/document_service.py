from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func, or_
from fastapi import HTTPException, status
from typing import List, Optional
import logging
import os
import uuid

from ..core.config import settings
from ..core.security import UserRole
from ..models.profile import Profile
from ..models.document import Document, DocumentCategory, DocumentShare, Folder
from ..schemas.document import (
    DownloadUrl, DocumentUpdate, FolderCreate, FolderUpdate,
    ShareCreate, ShareResponse, SharedDocument, DocumentResponse
)
from ..schemas.profile import ProfileSummary
from .directory_service import DirectoryService
from .notification_service import NotificationService
from .storage_service import StorageService, DOCUMENTS_BUCKET

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 30

class DocumentService:
    def __init__(self, db: Session, storage: StorageService):
        self.db = db
        self.storage = storage

    def get_user_documents(
        self,
        owner_id: int,
        category: Optional[str] = None,
        folder_id: Optional[int] = None
    ) -> List[Document]:
        query = self.db.query(Document).filter(Document.owner_id == owner_id)
        if category and category != "all":
            try:
                query = query.filter(Document.category == DocumentCategory(category))
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Unknown document category: {category}"
                )
        if folder_id is not None:
            self._get_folder(folder_id, owner_id)
            query = query.filter(Document.folder_id == folder_id)
        return query.order_by(Document.created_at.desc(), Document.id.desc()).all()

    def count_documents(self, owner_id: int) -> int:
        return self.db.query(Document).filter(Document.owner_id == owner_id).count()

    def get_document(self, document_id: int, viewer: Profile) -> Document:
        """A document visible to the viewer: their own, one shared with them, or a care-team patient's."""
        document = self.db.query(Document).filter(Document.id == document_id).first()
        if document and self._can_view(document, viewer):
            return document

        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )

    def upload_document(
        self,
        owner: Profile,
        filename: str,
        content_type: Optional[str],
        data: bytes,
        title: str,
        category: DocumentCategory,
        notes: Optional[str] = None,
        folder_id: Optional[int] = None
    ) -> Document:
        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Uploaded file is empty"
            )
        if len(data) > settings.MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="File is too large"
            )
        if not title or not title.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title is required"
            )
        if folder_id is not None:
            self._get_folder(folder_id, owner.id)

        storage_id = str(uuid.uuid4())
        ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "bin"
        file_path = f"{owner.id}/{storage_id}/{storage_id}.{ext}"

        self.storage.upload(DOCUMENTS_BUCKET, file_path, data)

        document = Document(
            owner_id=owner.id,
            patient_id=owner.id if owner.role == UserRole.PATIENT else None,
            uploaded_by=owner.id,
            folder_id=folder_id,
            title=title.strip(),
            category=category,
            file_path=file_path,
            mime_type=content_type,
            file_size=len(data),
            notes=notes or None
        )
        try:
            self.db.add(document)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating document record: {str(e)}")
            # Don't leave an orphaned file behind
            self.storage.remove(DOCUMENTS_BUCKET, [file_path])
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not save the document"
            )

        self.db.refresh(document)
        logger.info(f"Document {document.id} uploaded by {owner.id}")
        return document

    def update_document(self, document_id: int, owner: Profile, patch: DocumentUpdate) -> Document:
        document = self._get_owned(document_id, owner.id)

        changes = patch.model_dump(exclude_unset=True)
        if changes.get("folder_id") is not None:
            self._get_folder(changes["folder_id"], owner.id)
        if "title" in changes and changes["title"] is None:
            changes.pop("title")

        for field, value in changes.items():
            setattr(document, field, value)

        self.db.commit()
        self.db.refresh(document)
        return document

    def delete_document(self, document_id: int, owner: Profile) -> bool:
        document = self._get_owned(document_id, owner.id)

        try:
            self.storage.remove(DOCUMENTS_BUCKET, [document.file_path])
        except OSError as e:
            # The record goes regardless; the file can be swept later
            logger.error(f"Error deleting file from storage: {str(e)}")

        self.db.query(DocumentShare).filter(
            DocumentShare.document_id == document.id
        ).delete(synchronize_session=False)
        self.db.delete(document)
        self.db.commit()
        return True

    def get_download_url(self, document_id: int, viewer: Profile) -> DownloadUrl:
        document = self.get_document(document_id, viewer)
        expires_in = settings.SIGNED_URL_EXPIRE_SECONDS
        return DownloadUrl(
            url=self.storage.create_signed_url(DOCUMENTS_BUCKET, document.file_path, expires_in),
            expires_in=expires_in
        )

    def search_documents(self, term: str, user_id: int, limit: int = SEARCH_LIMIT) -> List[Document]:
        """Own and shared documents whose title, notes or category contain the term."""
        term = (term or "").strip().lower()
        if not term:
            return []

        like = f"%{term}%"
        shared_ids = self.db.query(DocumentShare.document_id).filter(
            DocumentShare.shared_with == user_id
        )
        categories = [c for c in DocumentCategory if term in c.value]

        matches = [
            func.lower(Document.title).like(like),
            func.lower(Document.notes).like(like),
        ]
        if categories:
            matches.append(Document.category.in_(categories))

        return self.db.query(Document).filter(
            or_(Document.owner_id == user_id, Document.id.in_(shared_ids)),
            or_(*matches)
        ).order_by(Document.created_at.desc(), Document.id.desc()).limit(limit).all()

    # Folders

    def get_folders(self, owner_id: int, parent_id: Optional[int] = None) -> List[Folder]:
        """Folders directly under ``parent_id``, or the top level, by name."""
        query = self.db.query(Folder).filter(Folder.owner_id == owner_id)
        if parent_id is not None:
            self._get_folder(parent_id, owner_id)
            query = query.filter(Folder.parent_id == parent_id)
        else:
            query = query.filter(Folder.parent_id.is_(None))
        return query.order_by(Folder.name.asc()).all()

    def create_folder(self, owner: Profile, data: FolderCreate) -> Folder:
        if data.parent_id is not None:
            self._get_folder(data.parent_id, owner.id)

        folder = Folder(owner_id=owner.id, parent_id=data.parent_id, name=data.name)
        if data.color:
            folder.color = data.color
        self.db.add(folder)
        self.db.commit()
        self.db.refresh(folder)
        return folder

    def update_folder(self, folder_id: int, owner: Profile, patch: FolderUpdate) -> Folder:
        folder = self._get_folder(folder_id, owner.id)
        for field, value in patch.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(folder, field, value)

        self.db.commit()
        self.db.refresh(folder)
        return folder

    def delete_folder(self, folder_id: int, owner: Profile) -> bool:
        """Delete a folder. Its documents and subfolders move up one level."""
        folder = self._get_folder(folder_id, owner.id)

        self.db.query(Document).filter(Document.folder_id == folder.id).update(
            {"folder_id": folder.parent_id}, synchronize_session=False
        )
        self.db.query(Folder).filter(Folder.parent_id == folder.id).update(
            {"parent_id": folder.parent_id}, synchronize_session=False
        )
        self.db.delete(folder)
        self.db.commit()
        return True

    # Sharing

    def share_document(self, document_id: int, owner: Profile, target: ShareCreate) -> ShareResponse:
        """Give another user read access. Sharing twice with the same user is a no-op."""
        document = self._get_owned(document_id, owner.id)
        recipient = self._find_recipient(target)

        if recipient.id == owner.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot share a document with yourself"
            )

        share = self.db.query(DocumentShare).filter(
            DocumentShare.document_id == document.id,
            DocumentShare.shared_with == recipient.id
        ).first()

        if share is None:
            share = DocumentShare(
                document_id=document.id,
                shared_by=owner.id,
                shared_with=recipient.id
            )
            self.db.add(share)
            NotificationService(self.db).notify(
                recipient.id,
                "Document shared with you",
                body=document.title,
                type="document",
                link="/dashboard/documentos",
                commit=False
            )
            self.db.commit()
            self.db.refresh(share)
            logger.info(f"Document {document.id} shared by {owner.id} with {recipient.id}")

        return self._share_response(share, recipient)

    def revoke_share(self, document_id: int, owner: Profile, shared_with: int) -> bool:
        deleted = self.db.query(DocumentShare).filter(
            DocumentShare.document_id == document_id,
            DocumentShare.shared_by == owner.id,
            DocumentShare.shared_with == shared_with
        ).delete(synchronize_session=False)

        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Share not found"
            )

        self.db.commit()
        return True

    def list_shares(self, document_id: int, owner: Profile) -> List[ShareResponse]:
        """Who a document is shared with, newest first."""
        document = self._get_owned(document_id, owner.id)
        shares = self.db.query(DocumentShare).filter(
            DocumentShare.document_id == document.id
        ).order_by(DocumentShare.created_at.desc(), DocumentShare.id.desc()).all()

        profiles = self._profiles({s.shared_with for s in shares})
        return [self._share_response(s, profiles.get(s.shared_with)) for s in shares]

    def get_shared_with_me(self, user_id: int) -> List[SharedDocument]:
        shares = self.db.query(DocumentShare).filter(
            DocumentShare.shared_with == user_id
        ).order_by(DocumentShare.created_at.desc(), DocumentShare.id.desc()).all()
        if not shares:
            return []

        documents = {
            d.id: d for d in self.db.query(Document).filter(
                Document.id.in_({s.document_id for s in shares})
            ).all()
        }
        senders = self._profiles({s.shared_by for s in shares})

        result = []
        for share in shares:
            document = documents.get(share.document_id)
            if document is None:
                continue
            sender = senders.get(share.shared_by)
            result.append(SharedDocument(
                share_id=share.id,
                shared_at=share.created_at,
                sender=ProfileSummary.model_validate(sender) if sender else None,
                document=DocumentResponse.model_validate(document)
            ))
        return result

    def _find_recipient(self, target: ShareCreate) -> Profile:
        query = self.db.query(Profile)
        if target.user_id is not None:
            recipient = query.filter(Profile.id == target.user_id).first()
        else:
            recipient = query.filter(
                func.lower(Profile.email) == str(target.email).lower()
            ).first()

        if not recipient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        return recipient

    def _share_response(self, share: DocumentShare, recipient: Optional[Profile]) -> ShareResponse:
        return ShareResponse(
            id=share.id,
            document_id=share.document_id,
            shared_with=share.shared_with,
            created_at=share.created_at,
            recipient=ProfileSummary.model_validate(recipient) if recipient else None
        )

    def _profiles(self, ids) -> dict:
        if not ids:
            return {}
        return {p.id: p for p in self.db.query(Profile).filter(Profile.id.in_(ids)).all()}

    def _get_owned(self, document_id: int, owner_id: int) -> Document:
        document = self.db.query(Document).filter(
            Document.id == document_id,
            Document.owner_id == owner_id
        ).first()
        if not document:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Document not found"
            )
        return document

    def _get_folder(self, folder_id: int, owner_id: int) -> Folder:
        folder = self.db.query(Folder).filter(
            Folder.id == folder_id,
            Folder.owner_id == owner_id
        ).first()
        if not folder:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Folder not found"
            )
        return folder

    def _can_view(self, document: Document, viewer: Profile) -> bool:
        if document.owner_id == viewer.id:
            return True
        shared = self.db.query(DocumentShare).filter(
            DocumentShare.document_id == document.id,
            DocumentShare.shared_with == viewer.id
        ).first()
        if shared:
            return True
        if viewer.role == UserRole.DOCTOR:
            return DirectoryService(self.db).has_active_care_link(viewer.id, document.patient_id)
        return False
