from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Numeric
from sqlalchemy.sql import func

from ..core.database import Base

class DoctorProfile(Base):
    __tablename__ = "doctor_profiles"

    doctor_id = Column(Integer, ForeignKey("profiles.id"), primary_key=True, index=True)

    # Professional information
    specialty = Column(String(100), nullable=False, index=True)
    professional_license = Column(String(50), nullable=False, unique=True)
    years_experience = Column(Integer, nullable=True)
    clinic_name = Column(String(200), nullable=True)
    address_text = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    consultation_fee = Column(Numeric(10, 2), nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DoctorProfile(doctor_id={self.doctor_id}, specialty='{self.specialty}')>"
