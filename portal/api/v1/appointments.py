from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import date
from typing import List

from ...core.database import get_db
from ...api.deps import require_onboarding
from ...models.profile import Profile
from ...services.appointment_service import AppointmentService
from ...services.calendar_service import month_bounds
from ...schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentStatusUpdate,
    AppointmentResponse, AppointmentWithDetails, AppointmentDays
)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.get("/upcoming", response_model=List[AppointmentWithDetails])
async def list_upcoming(
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Active appointments from now on, soonest first."""
    return AppointmentService(db).list_upcoming(profile.id, profile.role)

@router.get("/past", response_model=List[AppointmentWithDetails])
async def list_past(
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).list_past(profile.id, profile.role)

@router.get("/days", response_model=AppointmentDays)
async def appointment_days(
    year: int = Query(..., ge=1970, le=2100),
    month: int = Query(..., ge=1, le=12),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Days of a month that have an active appointment."""
    start, end = month_bounds(year, month)
    days = AppointmentService(db).get_appointment_days_in_month(profile.id, start, end, profile.role)
    return AppointmentDays(days=days)

@router.get("/doctor/{doctor_id}", response_model=List[AppointmentResponse])
async def doctor_appointments(
    doctor_id: int,
    day: date = Query(..., alias="date"),
    _: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """A doctor's booked slots on one day."""
    return AppointmentService(db).get_doctor_appointments(doctor_id, day)

@router.post("", response_model=AppointmentWithDetails, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    appointment_service = AppointmentService(db)
    appointment = appointment_service.create_appointment(profile, payload)
    return appointment_service.enrich([appointment])[0]

@router.get("/{appointment_id}", response_model=AppointmentWithDetails)
async def get_appointment(
    appointment_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).get_appointment(appointment_id, profile.id)

@router.patch("/{appointment_id}", response_model=AppointmentWithDetails)
async def update_appointment(
    appointment_id: int,
    patch: AppointmentUpdate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Reschedule or edit an open appointment."""
    appointment_service = AppointmentService(db)
    appointment = appointment_service.update_appointment(appointment_id, profile.id, patch)
    return appointment_service.enrich([appointment])[0]

@router.patch("/{appointment_id}/status", response_model=AppointmentWithDetails)
async def update_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    appointment_service = AppointmentService(db)
    appointment = appointment_service.update_status(appointment_id, profile, payload.status)
    return appointment_service.enrich([appointment])[0]

@router.post("/{appointment_id}/cancel", response_model=AppointmentWithDetails)
async def cancel_appointment(
    appointment_id: int,
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    appointment_service = AppointmentService(db)
    appointment = appointment_service.cancel_appointment(appointment_id, profile)
    return appointment_service.enrich([appointment])[0]
