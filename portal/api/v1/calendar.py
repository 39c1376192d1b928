from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date, datetime, timedelta
from typing import List, Optional

from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import require_onboarding
from ...models.profile import Profile
from ...services.appointment_service import AppointmentService
from ...services import calendar_service as cal
from ...schemas.appointment import AppointmentWithDetails
from ...schemas.calendar import CalendarEvent, DayColumn, WeekView, DayView, MonthView

router = APIRouter(prefix="/calendar", tags=["Calendar"])

def _events(
    appointments: List[AppointmentWithDetails],
    viewer: Profile,
    first_hour: int,
    hour_height: float,
    gap: float
) -> List[CalendarEvent]:
    events = []
    for appointment in appointments:
        # Doctors see who is coming, patients see who they are seeing
        other = appointment.patient if viewer.role == UserRole.DOCTOR else appointment.doctor
        title = (other.full_name if other and other.full_name else None) or appointment.reason or "Appointment"
        top, height = cal.event_geometry(
            appointment.start_at, appointment.end_at, first_hour, hour_height, gap
        )
        events.append(CalendarEvent(
            appointment_id=appointment.id,
            title=title,
            start_at=appointment.start_at,
            end_at=appointment.end_at,
            status=appointment.status,
            mode=appointment.mode,
            top=top,
            height=height
        ))
    return events

def _load(db: Session, profile: Profile, start: datetime, end: datetime) -> List[AppointmentWithDetails]:
    appointment_service = AppointmentService(db)
    return appointment_service.enrich(
        appointment_service.list_in_range(profile.id, start, end, profile.role)
    )

@router.get("/week", response_model=WeekView)
async def week_view(
    start: Optional[date] = Query(default=None),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Monday to Friday columns from 7 AM to 2 PM."""
    week_start = cal.start_of_week(start or date.today())
    days = cal.week_days(week_start)
    range_start = datetime(week_start.year, week_start.month, week_start.day)

    events = _events(
        _load(db, profile, range_start, range_start + timedelta(days=len(days))),
        profile,
        cal.WEEK_FIRST_HOUR,
        cal.WEEK_HOUR_HEIGHT,
        cal.WEEK_EVENT_GAP
    )
    by_day = cal.group_by_day(events)

    return WeekView(
        week_start=week_start,
        slots=cal.time_slots(cal.WEEK_FIRST_HOUR, cal.WEEK_LAST_HOUR),
        days=[DayColumn(day=day, events=by_day.get(day.date, [])) for day in days]
    )

@router.get("/day", response_model=DayView)
async def day_view(
    day: Optional[date] = Query(default=None, alias="date"),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Hour rows from 7 AM to 8 PM for one day."""
    day = day or date.today()
    range_start = datetime(day.year, day.month, day.day)

    events = _events(
        _load(db, profile, range_start, range_start + timedelta(days=1)),
        profile,
        cal.DAY_FIRST_HOUR,
        cal.DAY_HOUR_HEIGHT,
        0
    )
    return DayView(
        date=day,
        slots=cal.time_slots(cal.DAY_FIRST_HOUR, cal.DAY_LAST_HOUR),
        events=events
    )

@router.get("/month", response_model=MonthView)
async def month_view(
    year: Optional[int] = Query(default=None, ge=1970, le=2100),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    profile: Profile = Depends(require_onboarding),
    db: Session = Depends(get_db)
):
    """Sunday-first 6x7 grid of the month."""
    today = date.today()
    year = year or today.year
    month = month or today.month
    start, end = cal.month_bounds(year, month)

    events = _events(
        _load(db, profile, start, end + timedelta(seconds=1)),
        profile,
        cal.WEEK_FIRST_HOUR,
        cal.WEEK_HOUR_HEIGHT,
        cal.WEEK_EVENT_GAP
    )
    return MonthView(
        year=year,
        month=month,
        cells=cal.month_grid(year, month, cal.group_by_day(events), today)
    )
