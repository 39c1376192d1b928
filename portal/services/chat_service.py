from sqlalchemy.orm import Session, aliased
from sqlalchemy import func, or_, and_
from fastapi import HTTPException, status
from datetime import datetime
from typing import List, Optional, Tuple
import logging

from ..models.chat import Conversation, ConversationParticipant, Message
from ..models.profile import Profile
from ..schemas.chat import ConversationWithDetails
from ..schemas.profile import ProfileSummary

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50

class ChatService:
    def __init__(self, db: Session):
        self.db = db

    def list_my_conversations(self, user_id: int) -> List[ConversationWithDetails]:
        """Conversations of a user with the other participant and unread count.

        Participants, profiles and unread counts are each fetched in a single
        query for all conversations.
        """
        conversation_ids = [
            row.conversation_id for row in self.db.query(
                ConversationParticipant.conversation_id
            ).filter(ConversationParticipant.user_id == user_id).all()
        ]
        if not conversation_ids:
            return []

        conversations = self.db.query(Conversation).filter(
            Conversation.id.in_(conversation_ids)
        ).all()

        others = self.db.query(
            ConversationParticipant.conversation_id,
            ConversationParticipant.user_id
        ).filter(
            ConversationParticipant.conversation_id.in_(conversation_ids),
            ConversationParticipant.user_id != user_id
        ).all()
        other_by_conversation = {row.conversation_id: row.user_id for row in others}

        profiles = {}
        other_ids = set(other_by_conversation.values())
        if other_ids:
            profiles = {
                p.id: p for p in self.db.query(Profile).filter(Profile.id.in_(other_ids)).all()
            }

        unread = self._unread_counts(user_id, conversation_ids)

        result = []
        for conversation in conversations:
            other = profiles.get(other_by_conversation.get(conversation.id))
            result.append(ConversationWithDetails(
                id=conversation.id,
                created_at=conversation.created_at,
                last_message_at=conversation.last_message_at,
                last_message_text=conversation.last_message_text,
                other_participant=ProfileSummary.model_validate(other) if other else None,
                unread_count=unread.get(conversation.id, 0)
            ))

        result.sort(
            key=lambda c: c.last_message_at or c.created_at or datetime.min,
            reverse=True
        )
        return result

    def get_conversation_between_users(self, user_a: int, user_b: int) -> Optional[Conversation]:
        first = aliased(ConversationParticipant)
        second = aliased(ConversationParticipant)
        return self.db.query(Conversation).join(
            first, first.conversation_id == Conversation.id
        ).join(
            second, second.conversation_id == Conversation.id
        ).filter(
            first.user_id == user_a,
            second.user_id == user_b
        ).order_by(Conversation.id).first()

    def start_new_conversation(self, user_id: int, other_user_id: int) -> Conversation:
        if user_id == other_user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot start a conversation with yourself"
            )

        other = self.db.query(Profile).filter(Profile.id == other_user_id).first()
        if not other:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        conversation = Conversation()
        conversation.participants = [
            ConversationParticipant(user_id=user_id),
            ConversationParticipant(user_id=other_user_id),
        ]
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)

        logger.info(f"Conversation {conversation.id} started between {user_id} and {other_user_id}")
        return conversation

    def get_or_create_conversation(self, user_id: int, other_user_id: int) -> Tuple[Conversation, bool]:
        existing = self.get_conversation_between_users(user_id, other_user_id)
        if existing:
            return existing, False
        return self.start_new_conversation(user_id, other_user_id), True

    def list_messages(
        self,
        conversation_id: int,
        user_id: int,
        limit: int = DEFAULT_PAGE_SIZE,
        before: Optional[datetime] = None,
        before_id: Optional[int] = None
    ) -> List[Message]:
        """A page of messages before the cursor, oldest first.

        ``before_id`` pages on ``(created_at, id)`` so messages sharing the
        cursor's timestamp are not skipped. ``before`` is a plain time cursor.
        """
        self._get_participant(conversation_id, user_id)

        query = self.db.query(Message).filter(Message.conversation_id == conversation_id)
        if before_id is not None:
            cursor = self.db.query(Message).filter(
                Message.id == before_id,
                Message.conversation_id == conversation_id
            ).first()
            if not cursor:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Unknown cursor message"
                )
            query = query.filter(or_(
                Message.created_at < cursor.created_at,
                and_(Message.created_at == cursor.created_at, Message.id < cursor.id)
            ))
        elif before is not None:
            query = query.filter(Message.created_at < before)

        page = query.order_by(
            Message.created_at.desc(), Message.id.desc()
        ).limit(limit).all()
        page.reverse()
        return page

    def send_message(self, conversation_id: int, sender_id: int, body: str) -> Message:
        participant = self._get_participant(conversation_id, sender_id)
        if not body or not body.strip():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message body cannot be empty"
            )

        now = datetime.utcnow()
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            body=body,
            created_at=now
        )
        self.db.add(message)

        conversation = participant.conversation
        conversation.last_message_at = now
        conversation.last_message_text = body[:500]
        participant.last_read_at = now

        self.db.commit()
        self.db.refresh(message)
        return message

    def mark_conversation_read(self, conversation_id: int, user_id: int) -> ConversationParticipant:
        participant = self._get_participant(conversation_id, user_id)
        participant.last_read_at = datetime.utcnow()
        self.db.commit()
        return participant

    def unread_total(self, user_id: int) -> int:
        return sum(self._unread_counts(user_id).values())

    def partner_ids(self, user_id: int) -> List[int]:
        """Everyone the user has a conversation with."""
        mine = self.db.query(ConversationParticipant.conversation_id).filter(
            ConversationParticipant.user_id == user_id
        )
        rows = self.db.query(ConversationParticipant.user_id).filter(
            ConversationParticipant.conversation_id.in_(mine),
            ConversationParticipant.user_id != user_id
        ).distinct().all()
        return [row.user_id for row in rows]

    def _unread_counts(self, user_id: int, conversation_ids: Optional[List[int]] = None) -> dict:
        """Messages from others newer than the user's read marker, per conversation."""
        query = self.db.query(
            Message.conversation_id, func.count(Message.id)
        ).join(
            ConversationParticipant,
            (ConversationParticipant.conversation_id == Message.conversation_id)
            & (ConversationParticipant.user_id == user_id)
        ).filter(
            Message.sender_id != user_id,
            or_(
                ConversationParticipant.last_read_at.is_(None),
                Message.created_at > ConversationParticipant.last_read_at
            )
        )
        if conversation_ids is not None:
            query = query.filter(Message.conversation_id.in_(conversation_ids))

        return dict(query.group_by(Message.conversation_id).all())

    def _get_participant(self, conversation_id: int, user_id: int) -> ConversationParticipant:
        participant = self.db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id
        ).first()
        if not participant:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Conversation not found"
            )
        return participant
