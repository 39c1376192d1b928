from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import List, Optional

from ...core.config import settings
from ...core.database import get_db
from ...api.deps import require_onboarding
from ...models.profile import Profile
from ...services.directory_service import DirectoryService
from ...services.appointment_service import AppointmentService
from ...services.calendar_service import available_slots
from ...schemas.directory import DoctorWithProfile
from ...schemas.calendar import Availability

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.get("", response_model=List[DoctorWithProfile])
async def list_doctors(
    q: Optional[str] = Query(default=None, max_length=100),
    limit: int = Query(default=50, ge=1, le=100),
    _: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Doctor directory. ``q`` matches name, specialty or clinic."""
    directory = DirectoryService(db)
    if q is not None:
        return directory.search_doctors(q)
    return directory.list_doctors(limit)

@router.get("/{doctor_id}", response_model=DoctorWithProfile)
async def get_doctor(
    doctor_id: int,
    _: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    return DirectoryService(db).get_doctor(doctor_id)

@router.get("/{doctor_id}/availability", response_model=Availability)
async def get_availability(
    doctor_id: int,
    day: date = Query(..., alias="date"),
    _: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Business hours of one day, flagged free, occupied or past."""
    DirectoryService(db).get_doctor(doctor_id)
    booked = AppointmentService(db).get_doctor_appointments(doctor_id, day)
    return Availability(
        doctor_id=doctor_id,
        date=day,
        slots=available_slots(day, [a.start_at for a in booked], settings.BUSINESS_HOURS)
    )
