from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from ..core.security import UserRole
from ..models.profile import OnboardingStep, Sex


class ProfileSummary(BaseModel):
    """Compact participant shape embedded in appointments and conversations."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None


class DoctorProfileData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    specialty: str = Field(..., min_length=1, max_length=100)
    professional_license: str = Field(..., min_length=1, max_length=50)
    years_experience: Optional[int] = Field(default=None, ge=0, le=80)
    clinic_name: Optional[str] = None
    address_text: Optional[str] = None
    bio: Optional[str] = None
    consultation_fee: Optional[Decimal] = Field(default=None, ge=0)


class PatientProfileData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    blood_type: Optional[str] = Field(default=None, max_length=10)
    allergies: Optional[str] = None
    chronic_conditions: Optional[str] = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: Optional[UserRole] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    sex: Optional[Sex] = None
    birthdate: Optional[date] = None
    avatar_url: Optional[str] = None
    onboarding_step: Optional[OnboardingStep] = None
    onboarding_completed: bool = False
    created_at: Optional[datetime] = None


class MyProfileResponse(ProfileResponse):
    doctor_profile: Optional[DoctorProfileData] = None
    patient_profile: Optional[PatientProfileData] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=30)
    sex: Optional[Sex] = None
    birthdate: Optional[date] = None
    avatar_url: Optional[str] = None


# Onboarding steps

class RoleSelection(BaseModel):
    role: UserRole


class BasicInfo(BaseModel):
    full_name: str
    sex: Sex
    birthdate: date

    @field_validator("full_name")
    @classmethod
    def full_name_required(cls, v):
        if not v.strip():
            raise ValueError("Full name is required")
        return v.strip()

    @field_validator("birthdate")
    @classmethod
    def must_be_adult(cls, v):
        # Year difference only, same as the signup form
        if date.today().year - v.year < 18:
            raise ValueError("You must be at least 18 years old")
        return v


class ContactInfo(BaseModel):
    phone: str = Field(..., min_length=6, max_length=30)


class OnboardingStatus(BaseModel):
    completed: bool
    step: Optional[OnboardingStep] = None
    role: Optional[UserRole] = None
    redirect_to: Optional[str] = None
