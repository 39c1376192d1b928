from sqlalchemy.orm import Session
from sqlalchemy import or_
from fastapi import HTTPException, status
from typing import List, Optional, Tuple
import logging

from ..core.security import UserRole
from ..models.user import User
from ..models.profile import Profile
from ..models.doctor import DoctorProfile
from ..models.patient import PatientProfile, CareLink, CareLinkStatus, PatientNote
from ..models.appointment import Appointment
from ..schemas.directory import (
    DoctorWithProfile, PatientProfileLite, PatientDetail, PatientNoteCreate
)
from ..schemas.profile import DoctorProfileData, PatientProfileData
from .chat_service import ChatService

logger = logging.getLogger(__name__)

ROSTER_APPOINTMENT_LIMIT = 200
DOCTOR_SEARCH_LIMIT = 20
PATIENT_SEARCH_LIMIT = 10

class DirectoryService:
    """Doctor and patient directories."""

    def __init__(self, db: Session):
        self.db = db

    # Doctors

    def list_doctors(self, limit: int = 50) -> List[DoctorWithProfile]:
        profiles = self._profiles_with_role(UserRole.DOCTOR).order_by(
            Profile.full_name
        ).limit(limit).all()
        return self._with_doctor_profiles(profiles)

    def search_doctors(self, query: str) -> List[DoctorWithProfile]:
        """Match name, specialty or clinic, case-insensitive."""
        term = query.strip()
        if not term:
            return self.list_doctors(DOCTOR_SEARCH_LIMIT)

        like = f"%{term}%"
        profiles = self._profiles_with_role(UserRole.DOCTOR).outerjoin(
            DoctorProfile, DoctorProfile.doctor_id == Profile.id
        ).filter(
            or_(
                Profile.full_name.ilike(like),
                DoctorProfile.specialty.ilike(like),
                DoctorProfile.clinic_name.ilike(like)
            )
        ).order_by(Profile.full_name).limit(DOCTOR_SEARCH_LIMIT).all()
        return self._with_doctor_profiles(profiles)

    def get_doctor(self, doctor_id: int) -> DoctorWithProfile:
        profile = self._profiles_with_role(UserRole.DOCTOR).filter(
            Profile.id == doctor_id
        ).first()
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Doctor not found"
            )
        return self._with_doctor_profiles([profile])[0]

    def get_patient_doctors(self, patient_id: int) -> List[DoctorWithProfile]:
        """The patient's care team."""
        doctor_ids = [
            link.doctor_id for link in self.db.query(CareLink.doctor_id).filter(
                CareLink.patient_id == patient_id,
                CareLink.status == CareLinkStatus.ACTIVE
            ).all()
        ]
        if not doctor_ids:
            return []

        profiles = self._profiles_with_role(UserRole.DOCTOR).filter(
            Profile.id.in_(doctor_ids)
        ).order_by(Profile.full_name).all()
        return self._with_doctor_profiles(profiles)

    # Patients

    def list_doctor_patients(self, doctor_id: int) -> List[PatientProfileLite]:
        """Patients seen in the doctor's appointments or conversations."""
        ids = set(self._roster_ids(doctor_id))
        if not ids:
            return []

        profiles = self.db.query(Profile).filter(
            Profile.id.in_(ids)
        ).order_by(Profile.full_name).all()
        return [PatientProfileLite.model_validate(p) for p in profiles]

    def search_patients(self, term: str) -> List[PatientProfileLite]:
        term = (term or "").strip()
        if not term:
            return []

        like = f"%{term}%"
        profiles = self._profiles_with_role(UserRole.PATIENT).filter(
            or_(Profile.email.ilike(like), Profile.full_name.ilike(like))
        ).order_by(Profile.full_name).limit(PATIENT_SEARCH_LIMIT).all()
        return [PatientProfileLite.model_validate(p) for p in profiles]

    def get_patient_detail(self, doctor_id: int, patient_id: int) -> PatientDetail:
        self._check_roster(doctor_id, patient_id)

        profile = self.db.query(Profile).filter(Profile.id == patient_id).first()
        detail = PatientDetail.model_validate(profile)
        extension = self.db.query(PatientProfile).filter(
            PatientProfile.patient_id == patient_id
        ).first()
        if extension:
            detail.patient_profile = PatientProfileData.model_validate(extension)
        return detail

    def get_patient_notes(self, doctor_id: int, patient_id: int) -> List[PatientNote]:
        """The doctor's own notes about a patient, newest first."""
        self._check_roster(doctor_id, patient_id)
        return self.db.query(PatientNote).filter(
            PatientNote.patient_id == patient_id,
            PatientNote.doctor_id == doctor_id
        ).order_by(PatientNote.created_at.desc(), PatientNote.id.desc()).all()

    def add_patient_note(self, doctor_id: int, patient_id: int, data: PatientNoteCreate) -> PatientNote:
        self._check_roster(doctor_id, patient_id)
        note = PatientNote(
            patient_id=patient_id,
            doctor_id=doctor_id,
            title=data.title.strip(),
            body=data.body
        )
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"Doctor {doctor_id} added note {note.id} for patient {patient_id}")
        return note

    def link_patient_conversation(self, doctor_id: int, patient_id: int) -> Tuple[int, bool]:
        """Open (or reuse) a conversation with a patient and add them to the care team."""
        self.get_patient(patient_id)
        conversation, created = ChatService(self.db).get_or_create_conversation(doctor_id, patient_id)
        self.ensure_care_link(doctor_id, patient_id)
        return conversation.id, created

    def get_patient(self, patient_id: int) -> Profile:
        profile = self._profiles_with_role(UserRole.PATIENT).filter(
            Profile.id == patient_id
        ).first()
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found"
            )
        return profile

    def ensure_care_link(self, doctor_id: int, patient_id: int, commit: bool = True) -> CareLink:
        link = self.db.query(CareLink).filter(
            CareLink.doctor_id == doctor_id,
            CareLink.patient_id == patient_id
        ).first()

        if link is None:
            link = CareLink(doctor_id=doctor_id, patient_id=patient_id, status=CareLinkStatus.ACTIVE)
            self.db.add(link)
        else:
            link.status = CareLinkStatus.ACTIVE

        if commit:
            self.db.commit()
        return link

    def has_active_care_link(self, doctor_id: int, patient_id: Optional[int]) -> bool:
        if patient_id is None:
            return False
        return self.db.query(CareLink).filter(
            CareLink.doctor_id == doctor_id,
            CareLink.patient_id == patient_id,
            CareLink.status == CareLinkStatus.ACTIVE
        ).first() is not None

    def _check_roster(self, doctor_id: int, patient_id: int):
        if patient_id not in self._roster_ids(doctor_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Patient not found"
            )

    def _roster_ids(self, doctor_id: int) -> List[int]:
        from_appointments = {
            row.patient_id for row in self.db.query(Appointment.patient_id).filter(
                Appointment.doctor_id == doctor_id
            ).limit(ROSTER_APPOINTMENT_LIMIT).all()
        }

        partner_ids = ChatService(self.db).partner_ids(doctor_id)
        from_chat = set()
        if partner_ids:
            from_chat = {
                row.id for row in self.db.query(User.id).filter(
                    User.id.in_(partner_ids),
                    User.role == UserRole.PATIENT
                ).all()
            }

        return sorted(from_appointments | from_chat)

    def _profiles_with_role(self, role: UserRole):
        return self.db.query(Profile).join(User, User.id == Profile.id).filter(
            User.role == role,
            User.is_active == True  # noqa: E712
        )

    def _with_doctor_profiles(self, profiles: List[Profile]) -> List[DoctorWithProfile]:
        """Attach doctor extension rows fetched in one query."""
        if not profiles:
            return []

        extensions = {
            ext.doctor_id: ext for ext in self.db.query(DoctorProfile).filter(
                DoctorProfile.doctor_id.in_([p.id for p in profiles])
            ).all()
        }

        result = []
        for profile in profiles:
            doctor = DoctorWithProfile.model_validate(profile)
            extension = extensions.get(profile.id)
            if extension:
                doctor.doctor_profile = DoctorProfileData.model_validate(extension)
            result.append(doctor)
        return result
