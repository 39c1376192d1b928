from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_current_profile
from ...models.profile import Profile
from ...services.notification_service import NotificationService
from ...schemas.notification import (
    NotificationResponse, NotificationSettingsResponse, NotificationSettingsUpdate
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])

@router.get("/unread", response_model=List[NotificationResponse])
async def get_unread(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return NotificationService(db).get_unread(profile.id)

@router.get("/settings", response_model=NotificationSettingsResponse)
async def get_settings(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return NotificationService(db).get_settings(profile.id)

@router.patch("/settings", response_model=NotificationSettingsResponse)
async def update_settings(
    updates: NotificationSettingsUpdate,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return NotificationService(db).update_settings(profile.id, updates)

@router.post("/read-all")
async def mark_all_read(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    updated = NotificationService(db).mark_all_read(profile.id)
    return {"updated": updated}

@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_read(notification_id, profile.id)
