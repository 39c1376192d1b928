from sqlalchemy.orm import Session
from sqlalchemy import or_
from fastapi import HTTPException, status
from datetime import datetime, date, timedelta
from typing import List, Optional
import logging

from ..core.config import settings
from ..core.security import UserRole
from ..models.profile import Profile
from ..models.doctor import DoctorProfile
from ..models.appointment import (
    Appointment, AppointmentStatus, ACTIVE_STATUSES, TERMINAL_STATUSES
)
from ..schemas.appointment import (
    AppointmentCreate, AppointmentUpdate, AppointmentWithDetails, DoctorSummary
)
from ..schemas.profile import ProfileSummary
from .directory_service import DirectoryService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

# Status changes only a doctor may make
DOCTOR_ONLY_STATUSES = (
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.REJECTED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
)

STATUS_TITLES = {
    AppointmentStatus.REQUESTED: "New appointment request",
    AppointmentStatus.CONFIRMED: "Appointment confirmed",
    AppointmentStatus.COMPLETED: "Appointment completed",
    AppointmentStatus.CANCELLED: "Appointment cancelled",
    AppointmentStatus.REJECTED: "Appointment rejected",
    AppointmentStatus.NO_SHOW: "Appointment marked as no-show",
}


class AppointmentService:
    def __init__(self, db: Session):
        self.db = db
        self.notifications = NotificationService(db)

    def get_appointment(self, appointment_id: int, user_id: int) -> AppointmentWithDetails:
        return self.enrich([self._get_for_participant(appointment_id, user_id)])[0]

    def list_upcoming(self, user_id: int, role: Optional[UserRole] = None) -> List[AppointmentWithDetails]:
        now = datetime.utcnow()
        query = self._for_user(user_id, role).filter(
            Appointment.start_at >= now,
            Appointment.status.in_(ACTIVE_STATUSES)
        ).order_by(Appointment.start_at.asc())
        return self.enrich(query.all())

    def list_past(self, user_id: int, role: Optional[UserRole] = None) -> List[AppointmentWithDetails]:
        """Appointments in the past or already closed."""
        now = datetime.utcnow()
        query = self._for_user(user_id, role).filter(
            or_(
                Appointment.start_at < now,
                Appointment.status.in_(TERMINAL_STATUSES)
            )
        ).order_by(Appointment.start_at.desc())
        return self.enrich(query.all())

    def enrich(self, appointments: List[Appointment]) -> List[AppointmentWithDetails]:
        """Attach participant summaries and doctor specialty/clinic.

        One query for all participant profiles, one for doctor extensions.
        """
        if not appointments:
            return []

        profile_ids = {a.doctor_id for a in appointments} | {a.patient_id for a in appointments}
        profiles = {
            p.id: p for p in self.db.query(Profile).filter(Profile.id.in_(profile_ids)).all()
        }

        doctor_ids = {a.doctor_id for a in appointments}
        extensions = {
            ext.doctor_id: ext for ext in self.db.query(DoctorProfile).filter(
                DoctorProfile.doctor_id.in_(doctor_ids)
            ).all()
        }

        result = []
        for appointment in appointments:
            item = AppointmentWithDetails.model_validate(appointment)

            doctor = profiles.get(appointment.doctor_id)
            if doctor:
                summary = DoctorSummary.model_validate(doctor)
                extension = extensions.get(appointment.doctor_id)
                if extension:
                    summary.specialty = extension.specialty
                    summary.clinic_name = extension.clinic_name
                item.doctor = summary

            patient = profiles.get(appointment.patient_id)
            if patient:
                item.patient = ProfileSummary.model_validate(patient)

            result.append(item)
        return result

    def create_appointment(self, creator: Profile, payload: AppointmentCreate) -> Appointment:
        """Book an appointment.

        Doctors book confirmed appointments for patients on their roster;
        patients send requests to a doctor.
        """
        directory = DirectoryService(self.db)

        if creator.role == UserRole.DOCTOR:
            if payload.patient_id is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="patient_id is required"
                )
            doctor_id = creator.id
            patient_id = directory.get_patient(payload.patient_id).id
            initial_status = AppointmentStatus.CONFIRMED
        else:
            if payload.doctor_id is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="doctor_id is required"
                )
            doctor_id = directory.get_doctor(payload.doctor_id).id
            patient_id = creator.id
            initial_status = AppointmentStatus.REQUESTED

        start_at = payload.start_at
        end_at = payload.end_at or start_at + timedelta(
            minutes=settings.DEFAULT_APPOINTMENT_MINUTES
        )

        if start_at <= datetime.utcnow():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Appointments must be scheduled in the future"
            )

        self._check_overlap(doctor_id, start_at, end_at)

        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=patient_id,
            created_by=creator.id,
            start_at=start_at,
            end_at=end_at,
            status=initial_status,
            mode=payload.mode,
            reason=payload.reason,
            symptoms=payload.symptoms,
            notes=payload.notes
        )
        self.db.add(appointment)
        self.db.flush()

        directory.ensure_care_link(doctor_id, patient_id, commit=False)
        counterpart = patient_id if creator.id == doctor_id else doctor_id
        self.notifications.notify(
            counterpart,
            STATUS_TITLES[initial_status],
            body=f"{start_at:%Y-%m-%d %H:%M}",
            type="appointment",
            link=f"/dashboard/consultas/{appointment.id}",
            commit=False
        )

        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} created by {creator.id} ({initial_status.value})")
        return appointment

    def update_appointment(self, appointment_id: int, user_id: int, patch: AppointmentUpdate) -> Appointment:
        appointment = self._get_for_participant(appointment_id, user_id)
        if appointment.status in TERMINAL_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Closed appointments cannot be modified"
            )

        changes = patch.model_dump(exclude_unset=True)
        if "start_at" in changes or "end_at" in changes:
            start_at = changes.pop("start_at", None) or appointment.start_at
            end_at = changes.pop("end_at", None)
            if end_at is None:
                end_at = start_at + (appointment.end_at - appointment.start_at)
            if end_at <= start_at:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="end_at must be after start_at"
                )
            self._check_overlap(appointment.doctor_id, start_at, end_at, exclude_id=appointment.id)
            appointment.start_at = start_at
            appointment.end_at = end_at

        for field, value in changes.items():
            setattr(appointment, field, value)

        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def update_status(self, appointment_id: int, actor: Profile, new_status: AppointmentStatus) -> Appointment:
        appointment = self._get_for_participant(appointment_id, actor.id)

        if appointment.status in TERMINAL_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Appointment is already {appointment.status.value}"
            )
        if new_status == AppointmentStatus.REQUESTED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot move an appointment back to requested"
            )
        if new_status in DOCTOR_ONLY_STATUSES and actor.id != appointment.doctor_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the doctor can set this status"
            )

        appointment.status = new_status
        counterpart = appointment.patient_id if actor.id == appointment.doctor_id else appointment.doctor_id
        self.notifications.notify(
            counterpart,
            STATUS_TITLES[new_status],
            body=f"{appointment.start_at:%Y-%m-%d %H:%M}",
            type="appointment",
            link=f"/dashboard/consultas/{appointment.id}",
            commit=False
        )

        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} -> {new_status.value} by {actor.id}")
        return appointment

    def cancel_appointment(self, appointment_id: int, actor: Profile) -> Appointment:
        return self.update_status(appointment_id, actor, AppointmentStatus.CANCELLED)

    def get_doctor_appointments(self, doctor_id: int, day: date) -> List[Appointment]:
        """Active appointments of a doctor on one day."""
        start = datetime(day.year, day.month, day.day)
        end = start + timedelta(days=1)
        return self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.start_at >= start,
            Appointment.start_at < end,
            Appointment.status.in_(ACTIVE_STATUSES)
        ).order_by(Appointment.start_at).all()

    def get_appointment_days_in_month(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        role: Optional[UserRole] = None
    ) -> List[str]:
        """Distinct YYYY-MM-DD days with active appointments in a range."""
        rows = self._for_user(user_id, role).with_entities(Appointment.start_at).filter(
            Appointment.start_at >= start,
            Appointment.start_at <= end,
            Appointment.status.in_(ACTIVE_STATUSES)
        ).all()
        return sorted({row.start_at.date().isoformat() for row in rows})

    def list_in_range(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        role: Optional[UserRole] = None
    ) -> List[Appointment]:
        """Non-cancelled appointments starting inside ``[start, end)``."""
        return self._for_user(user_id, role).filter(
            Appointment.start_at >= start,
            Appointment.start_at < end,
            Appointment.status.notin_((AppointmentStatus.CANCELLED, AppointmentStatus.REJECTED))
        ).order_by(Appointment.start_at).all()

    def _for_user(self, user_id: int, role: Optional[UserRole]):
        query = self.db.query(Appointment)
        if role == UserRole.DOCTOR:
            return query.filter(Appointment.doctor_id == user_id)
        if role == UserRole.PATIENT:
            return query.filter(Appointment.patient_id == user_id)
        return query.filter(
            or_(Appointment.doctor_id == user_id, Appointment.patient_id == user_id)
        )

    def _get_for_participant(self, appointment_id: int, user_id: int) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            or_(Appointment.doctor_id == user_id, Appointment.patient_id == user_id)
        ).first()
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Appointment not found"
            )
        return appointment

    def _check_overlap(self, doctor_id: int, start_at: datetime, end_at: datetime, exclude_id: Optional[int] = None):
        query = self.db.query(Appointment).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.start_at < end_at,
            Appointment.end_at > start_at
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)

        if query.first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="The doctor already has an appointment at that time"
            )
