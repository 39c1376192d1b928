from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from ...core.database import get_db
from ...api.deps import require_onboarding
from ...models.profile import Profile
from ...services.chat_service import ChatService, DEFAULT_PAGE_SIZE
from ...schemas.common import to_utc_naive
from ...schemas.chat import (
    ConversationWithDetails, ConversationStart, ConversationRef,
    MessageCreate, MessageResponse, UnreadTotal
)

router = APIRouter(prefix="/chat", tags=["Messaging"])

@router.get("/conversations", response_model=List[ConversationWithDetails])
async def list_conversations(
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Conversations with the other participant and unread counts, latest activity first."""
    return ChatService(db).list_my_conversations(profile.id)

@router.post("/conversations", response_model=ConversationRef)
async def start_conversation(
    payload: ConversationStart,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Reuse the existing conversation with that user or open a new one."""
    conversation, created = ChatService(db).get_or_create_conversation(profile.id, payload.other_user_id)
    return ConversationRef(id=conversation.id, created=created)

@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    conversation_id: int,
    before: Optional[datetime] = Query(default=None),
    before_id: Optional[int] = Query(default=None),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=200),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Latest page, oldest first. Pass the oldest id seen as ``before_id`` for the next page."""
    return ChatService(db).list_messages(
        conversation_id, profile.id, limit, to_utc_naive(before), before_id
    )

@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED
)
async def send_message(
    conversation_id: int,
    payload: MessageCreate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    return ChatService(db).send_message(conversation_id, profile.id, payload.body)

@router.post("/conversations/{conversation_id}/read")
async def mark_read(
    conversation_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    participant = ChatService(db).mark_conversation_read(conversation_id, profile.id)
    return {"conversation_id": conversation_id, "last_read_at": participant.last_read_at}

@router.get("/unread", response_model=UnreadTotal)
async def unread_total(
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    return UnreadTotal(unread=ChatService(db).unread_total(profile.id))
