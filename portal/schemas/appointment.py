from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List
from datetime import datetime

from ..models.appointment import AppointmentStatus, AppointmentMode
from .common import to_utc_naive
from .profile import ProfileSummary


class DoctorSummary(ProfileSummary):
    specialty: Optional[str] = None
    clinic_name: Optional[str] = None


class AppointmentCreate(BaseModel):
    # The counterpart: a doctor books for patient_id, a patient books with doctor_id
    doctor_id: Optional[int] = None
    patient_id: Optional[int] = None
    start_at: datetime
    end_at: Optional[datetime] = None
    mode: AppointmentMode = AppointmentMode.IN_PERSON
    reason: str = Field(..., min_length=1)
    symptoms: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_datetime(cls, v):
        return to_utc_naive(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_at is not None and self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class AppointmentUpdate(BaseModel):
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    mode: Optional[AppointmentMode] = None
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_datetime(cls, v):
        return to_utc_naive(v)

    @field_validator("mode", mode="before")
    @classmethod
    def mode_not_null(cls, v):
        # Leave the field out to keep the current mode
        if v is None:
            raise ValueError("mode cannot be null")
        return v

    @model_validator(mode="after")
    def check_range(self):
        if self.start_at is not None and self.end_at is not None and self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doctor_id: int
    patient_id: int
    created_by: Optional[int] = None
    start_at: datetime
    end_at: datetime
    status: AppointmentStatus
    mode: AppointmentMode
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class AppointmentWithDetails(AppointmentResponse):
    doctor: Optional[DoctorSummary] = None
    patient: Optional[ProfileSummary] = None


class AppointmentDays(BaseModel):
    days: List[str]
