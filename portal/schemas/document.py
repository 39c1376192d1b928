from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime

from ..models.document import DocumentCategory
from .profile import ProfileSummary


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    patient_id: Optional[int] = None
    uploaded_by: Optional[int] = None
    folder_id: Optional[int] = None
    title: str
    category: DocumentCategory
    file_path: str
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class DocumentUpdate(BaseModel):
    """Rename, annotate or move a document. ``folder_id: null`` moves it to the root."""
    title: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    folder_id: Optional[int] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Title cannot be empty")
        return v.strip() if v else v


class DownloadUrl(BaseModel):
    url: str
    expires_in: int


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    parent_id: Optional[int] = None
    color: Optional[str] = Field(default=None, max_length=20)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Folder name cannot be empty")
        return v.strip()


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    color: Optional[str] = Field(default=None, max_length=20)
    is_favorite: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Folder name cannot be empty")
        return v.strip() if v else v


class FolderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    parent_id: Optional[int] = None
    name: str
    color: str
    is_favorite: bool
    created_at: Optional[datetime] = None


class ShareCreate(BaseModel):
    # Either the recipient's id or their email
    user_id: Optional[int] = None
    email: Optional[EmailStr] = None

    @model_validator(mode="after")
    def target_required(self):
        if self.user_id is None and self.email is None:
            raise ValueError("user_id or email is required")
        return self


class ShareResponse(BaseModel):
    id: int
    document_id: int
    shared_with: int
    created_at: Optional[datetime] = None
    recipient: Optional[ProfileSummary] = None


class SharedDocument(BaseModel):
    """A document someone else shared with the current user."""
    share_id: int
    shared_at: Optional[datetime] = None
    sender: Optional[ProfileSummary] = None
    document: DocumentResponse
