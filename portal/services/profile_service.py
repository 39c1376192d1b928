from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
from typing import Optional
import logging
import time

from ..core.config import settings
from ..core.security import UserRole, RedirectRequired
from ..models.user import User
from ..models.profile import Profile, OnboardingStep
from ..models.doctor import DoctorProfile
from ..models.patient import PatientProfile
from ..schemas.profile import (
    ProfileUpdate, DoctorProfileData, PatientProfileData,
    BasicInfo, ContactInfo, OnboardingStatus, MyProfileResponse
)
from . import onboarding
from .storage_service import StorageService, AVATARS_BUCKET

logger = logging.getLogger(__name__)

# Content type -> stored extension
AVATAR_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

class ProfileService:
    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, profile_id: int) -> Profile:
        profile = self.db.query(Profile).filter(Profile.id == profile_id).first()
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Profile not found"
            )
        return profile

    def get_my_profile(self, profile: Profile) -> MyProfileResponse:
        """Profile with the extension row matching its role."""
        response = MyProfileResponse.model_validate(profile)
        if profile.role == UserRole.DOCTOR:
            extension = self.get_doctor_profile(profile.id)
            if extension:
                response.doctor_profile = DoctorProfileData.model_validate(extension)
        elif profile.role == UserRole.PATIENT:
            extension = self.get_patient_profile(profile.id)
            if extension:
                response.patient_profile = PatientProfileData.model_validate(extension)
        return response

    def get_doctor_profile(self, doctor_id: int) -> Optional[DoctorProfile]:
        return self.db.query(DoctorProfile).filter(
            DoctorProfile.doctor_id == doctor_id
        ).first()

    def get_patient_profile(self, patient_id: int) -> Optional[PatientProfile]:
        return self.db.query(PatientProfile).filter(
            PatientProfile.patient_id == patient_id
        ).first()

    def update_my_profile(self, profile: Profile, updates: ProfileUpdate) -> Profile:
        for field, value in updates.model_dump(exclude_unset=True).items():
            setattr(profile, field, value)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    def upsert_doctor_profile(self, doctor_id: int, data: DoctorProfileData) -> DoctorProfile:
        extension = self.get_doctor_profile(doctor_id)
        if extension is None:
            extension = DoctorProfile(doctor_id=doctor_id)
            self.db.add(extension)

        for field, value in data.model_dump().items():
            setattr(extension, field, value)

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.error(f"Doctor profile upsert failed for {doctor_id}: duplicate license")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Professional license already registered"
            )
        self.db.refresh(extension)
        return extension

    def upsert_patient_profile(self, patient_id: int, data: PatientProfileData) -> PatientProfile:
        extension = self.get_patient_profile(patient_id)
        if extension is None:
            extension = PatientProfile(patient_id=patient_id)
            self.db.add(extension)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(extension, field, value)

        self.db.commit()
        self.db.refresh(extension)
        return extension

    def upload_avatar(
        self,
        profile: Profile,
        content_type: Optional[str],
        data: bytes,
        storage: StorageService
    ) -> Profile:
        """Store an avatar in the public bucket.

        The extension comes from the content type, never from the client's
        filename, so only images are ever served from the bucket.
        """
        ext = AVATAR_TYPES.get(content_type)
        if ext is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Avatar must be an image"
            )
        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Uploaded file is empty"
            )
        if len(data) > settings.MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="File is too large"
            )

        path = f"{profile.id}/{int(time.time() * 1000)}.{ext}"
        storage.upload(AVATARS_BUCKET, path, data)

        profile.avatar_url = storage.get_public_url(AVATARS_BUCKET, path)
        self.db.commit()
        self.db.refresh(profile)
        return profile

    # Onboarding

    def onboarding_status(self, profile: Profile) -> OnboardingStatus:
        if profile.onboarding_completed:
            return OnboardingStatus(
                completed=True,
                step=None,
                role=profile.role,
                redirect_to=onboarding.DASHBOARD_PATH
            )
        return OnboardingStatus(
            completed=False,
            step=profile.onboarding_step,
            role=profile.role,
            redirect_to=onboarding.redirect_for(profile.onboarding_step, profile.role)
        )

    def select_role(self, profile: Profile, role: UserRole) -> Profile:
        user = self.db.query(User).filter(User.id == profile.id).first()
        user.role = role
        return self._save_step(profile, OnboardingStep.BASIC)

    def save_basic(self, profile: Profile, data: BasicInfo) -> Profile:
        self._require_step(profile, OnboardingStep.BASIC)
        profile.full_name = data.full_name
        profile.sex = data.sex
        profile.birthdate = data.birthdate
        return self._save_step(profile, OnboardingStep.CONTACT)

    def save_contact(self, profile: Profile, data: ContactInfo) -> Profile:
        self._require_step(profile, OnboardingStep.CONTACT)
        profile.phone = data.phone
        return self._save_step(profile, OnboardingStep.DETAILS)

    def save_doctor_details(self, profile: Profile, data: DoctorProfileData) -> Profile:
        self._require_details(profile, UserRole.DOCTOR)
        self.upsert_doctor_profile(profile.id, data)
        return self._save_step(profile, OnboardingStep.DONE)

    def save_patient_details(self, profile: Profile, data: PatientProfileData) -> Profile:
        self._require_details(profile, UserRole.PATIENT)
        self.upsert_patient_profile(profile.id, data)
        return self._save_step(profile, OnboardingStep.DONE)

    def complete_onboarding(self, profile: Profile) -> Profile:
        self._require_step(profile, OnboardingStep.DONE)
        profile.onboarding_completed = True
        profile.onboarding_step = None
        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"Profile {profile.id} completed onboarding")
        return profile

    def _require_step(self, profile: Profile, required: OnboardingStep):
        if not onboarding.has_reached(profile.onboarding_step, required):
            raise RedirectRequired(
                "Previous onboarding step is incomplete",
                onboarding.redirect_for(profile.onboarding_step, profile.role),
                status_code=status.HTTP_409_CONFLICT
            )

    def _require_details(self, profile: Profile, role: UserRole):
        self._require_step(profile, OnboardingStep.DETAILS)
        if profile.role != role:
            raise RedirectRequired(
                f"These details are for {role.value} accounts",
                onboarding.redirect_for(profile.onboarding_step, profile.role),
                status_code=status.HTTP_409_CONFLICT
            )

    def _save_step(self, profile: Profile, step: OnboardingStep) -> Profile:
        profile.onboarding_step = step
        self.db.commit()
        self.db.refresh(profile)
        return profile
