from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from .profile import ProfileSummary


class ConversationWithDetails(BaseModel):
    id: int
    created_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    last_message_text: Optional[str] = None
    other_participant: Optional[ProfileSummary] = None
    unread_count: int = 0


class ConversationStart(BaseModel):
    other_user_id: int


class ConversationRef(BaseModel):
    id: int
    created: bool = False


class MessageCreate(BaseModel):
    body: str = Field(..., max_length=5000)

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Message body cannot be empty")
        return v


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: int
    body: str
    created_at: datetime


class UnreadTotal(BaseModel):
    unread: int
