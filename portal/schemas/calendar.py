from pydantic import BaseModel
from typing import Optional, List
from datetime import date, datetime

from ..models.appointment import AppointmentStatus, AppointmentMode


class TimeSlot(BaseModel):
    hour: int
    label: str
    time: str


class WeekDay(BaseModel):
    date: date
    day_name: str
    day_number: int


class CalendarEvent(BaseModel):
    appointment_id: int
    title: str
    start_at: datetime
    end_at: datetime
    status: AppointmentStatus
    mode: AppointmentMode
    top: float
    height: float


class DayColumn(BaseModel):
    day: WeekDay
    events: List[CalendarEvent]


class WeekView(BaseModel):
    week_start: date
    slots: List[TimeSlot]
    days: List[DayColumn]


class DayView(BaseModel):
    date: date
    slots: List[TimeSlot]
    events: List[CalendarEvent]


class MonthCell(BaseModel):
    date: date
    day: int
    is_current_month: bool
    is_today: bool
    events: List[CalendarEvent]


class MonthView(BaseModel):
    year: int
    month: int
    cells: List[MonthCell]


class AvailabilitySlot(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = None


class Availability(BaseModel):
    doctor_id: int
    date: date
    slots: List[AvailabilitySlot]
