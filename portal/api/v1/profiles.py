from fastapi import APIRouter, Depends, UploadFile, File
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_current_profile, get_doctor_profile, get_patient_profile
from ...models.profile import Profile
from ...services.profile_service import ProfileService
from ...services.directory_service import DirectoryService
from ...services.storage_service import StorageService, get_storage
from ...schemas.profile import (
    MyProfileResponse, ProfileUpdate, DoctorProfileData, PatientProfileData
)

router = APIRouter(prefix="/profiles", tags=["Profiles"])

@router.get("/me", response_model=MyProfileResponse)
async def get_my_profile(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Current profile with its doctor or patient extension."""
    return ProfileService(db).get_my_profile(profile)

@router.patch("/me", response_model=MyProfileResponse)
async def update_my_profile(
    updates: ProfileUpdate,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = profile_service.update_my_profile(profile, updates)
    return profile_service.get_my_profile(profile)

@router.post("/me/avatar", response_model=MyProfileResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage)
):
    """Store a new avatar and point the profile at its public URL."""
    data = await file.read()
    profile_service = ProfileService(db)
    profile = profile_service.upload_avatar(
        profile, file.content_type, data, storage
    )
    return profile_service.get_my_profile(profile)

@router.put("/me/doctor", response_model=DoctorProfileData)
async def upsert_doctor_profile(
    data: DoctorProfileData,
    profile: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    return ProfileService(db).upsert_doctor_profile(profile.id, data)

@router.put("/me/patient", response_model=PatientProfileData)
async def upsert_patient_profile(
    data: PatientProfileData,
    profile: Profile = Depends(get_patient_profile),
    db: Session = Depends(get_db)
):
    return ProfileService(db).upsert_patient_profile(profile.id, data)

@router.get("/doctors/{doctor_id}/extension", response_model=Optional[DoctorProfileData])
async def get_doctor_extension(
    doctor_id: int,
    _: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Doctor extension row, or null when none was saved."""
    return ProfileService(db).get_doctor_profile(doctor_id)

@router.get("/patients/{patient_id}/extension", response_model=Optional[PatientProfileData])
async def get_patient_extension(
    patient_id: int,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Patient extension row, or null. Readable by the patient and their doctors."""
    if profile.id != patient_id and not DirectoryService(db).has_active_care_link(profile.id, patient_id):
        return None
    return ProfileService(db).get_patient_profile(patient_id)
