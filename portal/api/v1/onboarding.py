from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_profile, only_onboarding
from ...models.profile import Profile
from ...services.profile_service import ProfileService
from ...schemas.profile import (
    OnboardingStatus, RoleSelection, BasicInfo, ContactInfo,
    DoctorProfileData, PatientProfileData
)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])

@router.get("/status", response_model=OnboardingStatus)
async def onboarding_status(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    """Where the user is in onboarding and which page to show."""
    return ProfileService(db).onboarding_status(profile)

@router.post("/role", response_model=OnboardingStatus)
async def select_role(
    selection: RoleSelection,
    profile: Profile = Depends(only_onboarding),
    db: Session = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = profile_service.select_role(profile, selection.role)
    return profile_service.onboarding_status(profile)

@router.post("/basic", response_model=OnboardingStatus)
async def save_basic(
    data: BasicInfo,
    profile: Profile = Depends(only_onboarding),
    db: Session = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = profile_service.save_basic(profile, data)
    return profile_service.onboarding_status(profile)

@router.post("/contact", response_model=OnboardingStatus)
async def save_contact(
    data: ContactInfo,
    profile: Profile = Depends(only_onboarding),
    db: Session = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = profile_service.save_contact(profile, data)
    return profile_service.onboarding_status(profile)

@router.post("/doctor", response_model=OnboardingStatus)
async def save_doctor_details(
    data: DoctorProfileData,
    profile: Profile = Depends(only_onboarding),
    db: Session = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = profile_service.save_doctor_details(profile, data)
    return profile_service.onboarding_status(profile)

@router.post("/patient", response_model=OnboardingStatus)
async def save_patient_details(
    data: PatientProfileData,
    profile: Profile = Depends(only_onboarding),
    db: Session = Depends(get_db)
):
    profile_service = ProfileService(db)
    profile = profile_service.save_patient_details(profile, data)
    return profile_service.onboarding_status(profile)

@router.post("/complete", response_model=OnboardingStatus)
async def complete_onboarding(
    profile: Profile = Depends(only_onboarding),
    db: Session = Depends(get_db)
):
    """Finish onboarding; the dashboard opens up afterwards."""
    profile_service = ProfileService(db)
    profile = profile_service.complete_onboarding(profile)
    return profile_service.onboarding_status(profile)
