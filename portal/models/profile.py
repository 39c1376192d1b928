from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Boolean, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class OnboardingStep(str, enum.Enum):
    ROLE = "role"
    BASIC = "basic"
    CONTACT = "contact"
    DETAILS = "details"
    DONE = "done"

class Sex(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNSPECIFIED = "unspecified"

class Profile(Base):
    __tablename__ = "profiles"

    # Shares its primary key with the user account
    id = Column(Integer, ForeignKey("users.id"), primary_key=True, index=True)

    full_name = Column(String(200), nullable=True, index=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(30), nullable=True)
    sex = Column(SQLEnum(Sex), nullable=True)
    birthdate = Column(Date, nullable=True)
    avatar_url = Column(String(500), nullable=True)

    # Onboarding
    onboarding_step = Column(SQLEnum(OnboardingStep), nullable=True, default=OnboardingStep.ROLE)
    onboarding_completed = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="profile")

    @property
    def role(self):
        return self.user.role if self.user else None

    def __repr__(self):
        return f"<Profile(id={self.id}, name='{self.full_name}', step='{self.onboarding_step}')>"
