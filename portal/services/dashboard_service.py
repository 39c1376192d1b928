from sqlalchemy.orm import Session
from datetime import datetime
import logging

from ..core.security import UserRole
from ..models.profile import Profile
from ..schemas.dashboard import DashboardSummary, NextAppointment, DashboardAlert
from .appointment_service import AppointmentService
from .calendar_service import month_bounds
from .chat_service import ChatService
from .directory_service import DirectoryService
from .document_service import DocumentService
from .notification_service import NotificationService
from .storage_service import StorageService

logger = logging.getLogger(__name__)

UNASSIGNED_DOCTOR = "Unassigned"

class DashboardService:
    def __init__(self, db: Session, storage: StorageService):
        self.db = db
        self.storage = storage

    def summary(self, profile: Profile, now: datetime = None) -> DashboardSummary:
        now = now or datetime.utcnow()
        appointments = AppointmentService(self.db)

        upcoming = appointments.list_upcoming(profile.id, profile.role)
        month_start, month_end = month_bounds(now.year, now.month)
        marked_dates = appointments.get_appointment_days_in_month(
            profile.id, month_start, month_end, profile.role
        )
        document_count = DocumentService(self.db, self.storage).count_documents(profile.id)
        unread_notifications = NotificationService(self.db).count_unread(profile.id)
        unread_messages = ChatService(self.db).unread_total(profile.id)

        active_patients = None
        if profile.role == UserRole.DOCTOR:
            active_patients = len(DirectoryService(self.db).list_doctor_patients(profile.id))

        next_appointment = None
        if upcoming:
            first = upcoming[0]
            next_appointment = NextAppointment(
                id=first.id,
                date=first.start_at.strftime("%Y-%m-%d"),
                time=first.start_at.strftime("%H:%M"),
                doctor=(first.doctor.full_name if first.doctor and first.doctor.full_name else UNASSIGNED_DOCTOR)
            )

        alerts = []
        if not profile.onboarding_completed:
            alerts.append(DashboardAlert(type="profile", message="Complete your medical profile"))
        if not upcoming:
            alerts.append(DashboardAlert(type="appointment", message="Book your first appointment"))
        if document_count == 0:
            alerts.append(DashboardAlert(type="document", message="Upload your medical records"))

        return DashboardSummary(
            user_name=profile.full_name or "User",
            avatar_url=profile.avatar_url,
            next_appointment=next_appointment,
            document_count=document_count,
            unread_notifications=unread_notifications,
            unread_messages=unread_messages,
            active_patients=active_patients,
            marked_dates=marked_dates,
            upcoming=upcoming,
            alerts=alerts
        )
