from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_doctor_profile, get_patient_profile
from ...models.profile import Profile
from ...services.directory_service import DirectoryService
from ...schemas.chat import ConversationRef
from ...schemas.directory import (
    DoctorWithProfile, PatientProfileLite, PatientDetail,
    PatientNoteCreate, PatientNoteResponse
)

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.get("/me/doctors", response_model=List[DoctorWithProfile])
async def get_my_doctors(
    profile: Profile = Depends(get_patient_profile),
    db: Session = Depends(get_db)
):
    """The current patient's care team."""
    return DirectoryService(db).get_patient_doctors(profile.id)

@router.get("", response_model=List[PatientProfileLite])
async def list_my_patients(
    profile: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    """Patients from the doctor's appointments and conversations."""
    return DirectoryService(db).list_doctor_patients(profile.id)

@router.get("/search", response_model=List[PatientProfileLite])
async def search_patients(
    q: str = Query(default="", max_length=100),
    _: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    return DirectoryService(db).search_patients(q)

@router.get("/{patient_id}", response_model=PatientDetail)
async def get_patient_detail(
    patient_id: int,
    profile: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    return DirectoryService(db).get_patient_detail(profile.id, patient_id)

@router.post("/{patient_id}/conversation", response_model=ConversationRef)
async def link_patient_conversation(
    patient_id: int,
    profile: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    """Open a conversation with a patient, adding them to the care team."""
    conversation_id, created = DirectoryService(db).link_patient_conversation(profile.id, patient_id)
    return ConversationRef(id=conversation_id, created=created)

@router.get("/{patient_id}/notes", response_model=List[PatientNoteResponse])
async def get_patient_notes(
    patient_id: int,
    profile: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    """Clinical notes the current doctor wrote about the patient."""
    return DirectoryService(db).get_patient_notes(profile.id, patient_id)

@router.post("/{patient_id}/notes", response_model=PatientNoteResponse, status_code=status.HTTP_201_CREATED)
async def add_patient_note(
    patient_id: int,
    payload: PatientNoteCreate,
    profile: Profile = Depends(get_doctor_profile),
    db: Session = Depends(get_db)
):
    return DirectoryService(db).add_patient_note(profile.id, patient_id, payload)
