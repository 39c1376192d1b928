from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from .profile import ProfileResponse, DoctorProfileData, PatientProfileData


class DoctorWithProfile(ProfileResponse):
    doctor_profile: Optional[DoctorProfileData] = None


class PatientProfileLite(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None


class PatientDetail(ProfileResponse):
    patient_profile: Optional[PatientProfileData] = None


class PatientNoteCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1)

    @field_validator("title", "body")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v


class PatientNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    doctor_id: int
    title: str
    body: str
    created_at: Optional[datetime] = None
