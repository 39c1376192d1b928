from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Boolean, Text,
    UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.sql import func
import enum

from ..core.database import Base

class DocumentCategory(str, enum.Enum):
    RADIOLOGY = "radiology"
    PRESCRIPTION = "prescription"
    HISTORY = "history"
    LAB = "lab"
    INSURANCE = "insurance"
    OTHER = "other"

class Folder(Base):
    __tablename__ = "document_folders"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("document_folders.id"), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    color = Column(String(20), nullable=False, default="#3B82F6")
    is_favorite = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Folder(id={self.id}, owner_id={self.owner_id}, name='{self.name}')>"

class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    uploaded_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    folder_id = Column(Integer, ForeignKey("document_folders.id"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    category = Column(SQLEnum(DocumentCategory), default=DocumentCategory.OTHER, nullable=False)
    file_path = Column(String(500), nullable=False, unique=True)
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Document(id={self.id}, owner_id={self.owner_id}, title='{self.title}')>"

class DocumentShare(Base):
    """Read access to a document granted by its owner."""

    __tablename__ = "document_shares"
    __table_args__ = (UniqueConstraint("document_id", "shared_with", name="uq_document_share"),)

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False, index=True)
    shared_by = Column(Integer, ForeignKey("profiles.id"), nullable=False)
    shared_with = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<DocumentShare(document_id={self.document_id}, shared_with={self.shared_with})>"
