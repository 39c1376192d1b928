from pydantic import BaseModel
from typing import Optional, List, Literal

from .appointment import AppointmentWithDetails


class NextAppointment(BaseModel):
    id: int
    date: str
    time: str
    doctor: str


class DashboardAlert(BaseModel):
    type: Literal["profile", "appointment", "document"]
    message: str


class DashboardSummary(BaseModel):
    user_name: str
    avatar_url: Optional[str] = None
    next_appointment: Optional[NextAppointment] = None
    document_count: int
    unread_notifications: int
    unread_messages: int
    active_patients: Optional[int] = None
    marked_dates: List[str]
    upcoming: List[AppointmentWithDetails]
    alerts: List[DashboardAlert]
