from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.sql import func
import enum

from ..core.database import Base

class PatientProfile(Base):
    __tablename__ = "patient_profiles"

    patient_id = Column(Integer, ForeignKey("profiles.id"), primary_key=True, index=True)

    # Emergency contact
    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)

    # Medical information
    blood_type = Column(String(10), nullable=True)
    allergies = Column(String(500), nullable=True)
    chronic_conditions = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<PatientProfile(patient_id={self.patient_id})>"

class CareLinkStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class CareLink(Base):
    """A doctor on a patient's care team."""

    __tablename__ = "care_links"
    __table_args__ = (UniqueConstraint("doctor_id", "patient_id", name="uq_care_link_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(SQLEnum(CareLinkStatus), default=CareLinkStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<CareLink(doctor_id={self.doctor_id}, patient_id={self.patient_id}, status='{self.status}')>"

class PatientNote(Base):
    """A clinical note a doctor keeps about a patient. Only its author reads it."""

    __tablename__ = "patient_notes"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    def __repr__(self):
        return f"<PatientNote(id={self.id}, patient_id={self.patient_id}, doctor_id={self.doctor_id})>"
