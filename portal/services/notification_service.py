from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from typing import List, Optional
import logging

from ..models.notification import Notification, NotificationSettings
from ..schemas.notification import NotificationSettingsUpdate

logger = logging.getLogger(__name__)

UNREAD_LIMIT = 10

class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def get_unread(self, user_id: int, limit: int = UNREAD_LIMIT) -> List[Notification]:
        """Latest unread notifications for a user."""
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).order_by(
            Notification.created_at.desc(), Notification.id.desc()
        ).limit(limit).all()

    def count_unread(self, user_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).count()

    def mark_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Notification not found"
            )

        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, user_id: int) -> int:
        updated = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).update({"is_read": True})
        self.db.commit()
        return updated

    def notify(
        self,
        user_id: int,
        title: str,
        body: Optional[str] = None,
        type: str = "system",
        link: Optional[str] = None,
        commit: bool = True
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            body=body,
            link=link,
            is_read=False
        )
        self.db.add(notification)
        if commit:
            self.db.commit()
            self.db.refresh(notification)
        logger.info(f"Notification '{type}' queued for user {user_id}")
        return notification

    def get_settings(self, user_id: int) -> NotificationSettings:
        """Notification preferences; defaults are stored on first read."""
        preferences = self.db.query(NotificationSettings).filter(
            NotificationSettings.user_id == user_id
        ).first()

        if preferences is None:
            preferences = NotificationSettings(
                user_id=user_id,
                email_notifications=True,
                appointment_reminders=True,
                whatsapp_notifications=False
            )
            self.db.add(preferences)
            self.db.commit()
            self.db.refresh(preferences)
        return preferences

    def update_settings(self, user_id: int, updates: NotificationSettingsUpdate) -> NotificationSettings:
        preferences = self.get_settings(user_id)
        for field, value in updates.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(preferences, field, value)

        self.db.commit()
        self.db.refresh(preferences)
        return preferences
