from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text
from sqlalchemy.sql import func

from ..core.database import Base

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False, default="system")
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    link = Column(String(255), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, read={self.is_read})>"

class NotificationSettings(Base):
    __tablename__ = "user_settings"

    user_id = Column(Integer, ForeignKey("profiles.id"), primary_key=True, index=True)
    email_notifications = Column(Boolean, default=True, nullable=False)
    appointment_reminders = Column(Boolean, default=True, nullable=False)
    whatsapp_notifications = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<NotificationSettings(user_id={self.user_id})>"
