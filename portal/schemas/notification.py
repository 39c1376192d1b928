from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: str
    title: str
    body: Optional[str] = None
    link: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None


class NotificationSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    email_notifications: bool
    appointment_reminders: bool
    whatsapp_notifications: bool
    updated_at: Optional[datetime] = None


class NotificationSettingsUpdate(BaseModel):
    email_notifications: Optional[bool] = None
    appointment_reminders: Optional[bool] = None
    whatsapp_notifications: Optional[bool] = None
