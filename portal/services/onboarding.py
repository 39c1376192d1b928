"""Onboarding step machine.

Profiles move through a linear sequence of screens::

    role -> basic -> contact -> details -> done -> (completed)

``details`` is role specific: doctors fill in their practice, patients their
medical basics. Once completed the step is cleared.
"""
from typing import Optional

from ..core.security import UserRole
from ..models.profile import OnboardingStep

ROLE_PATH = "/onboarding/role"
DASHBOARD_PATH = "/dashboard"

STEP_ORDER = [
    OnboardingStep.ROLE,
    OnboardingStep.BASIC,
    OnboardingStep.CONTACT,
    OnboardingStep.DETAILS,
    OnboardingStep.DONE,
]


def redirect_for(step: Optional[OnboardingStep], role: Optional[UserRole]) -> str:
    """Page an incomplete profile should be sent to."""
    if step == OnboardingStep.BASIC:
        return "/onboarding/basic"
    if step == OnboardingStep.CONTACT:
        return "/onboarding/contact"
    if step == OnboardingStep.DETAILS:
        if role == UserRole.DOCTOR:
            return "/onboarding/doctor"
        if role == UserRole.PATIENT:
            return "/onboarding/patient"
        return ROLE_PATH
    if step == OnboardingStep.DONE:
        return "/onboarding/done"
    return ROLE_PATH


def next_step(step: OnboardingStep) -> Optional[OnboardingStep]:
    index = STEP_ORDER.index(step)
    if index + 1 < len(STEP_ORDER):
        return STEP_ORDER[index + 1]
    return None


def has_reached(current: Optional[OnboardingStep], required: OnboardingStep) -> bool:
    """True when ``current`` is at or past ``required`` in the sequence."""
    if current is None:
        return False
    return STEP_ORDER.index(current) >= STEP_ORDER.index(required)
