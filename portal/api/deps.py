from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError,
    RedirectRequired, UserRole, TokenPayload
)
from ..models.user import User
from ..models.profile import Profile
from ..services.auth_service import AuthService
from ..services.onboarding import redirect_for, DASHBOARD_PATH
from ..services.session_service import SessionTracker

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db),
    redis_client=Depends(get_redis)
) -> User:
    """Get current authenticated user and record session activity."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == token_payload.sub).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    sessions = SessionTracker(redis_client)
    if not sessions.is_active(user.id):
        raise AuthenticationError("Session has ended, please sign in again")

    if not sessions.touch(user.id):
        AuthService(db, redis_client).expire_session(user.id)
        raise AuthenticationError("Session expired due to inactivity")

    return user

async def get_current_profile(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> Profile:
    profile = db.query(Profile).filter(Profile.id == current_user.id).first()
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )
    return profile

# Route guards

async def require_onboarding(
    profile: Profile = Depends(get_current_profile)
) -> Profile:
    """Only profiles that finished onboarding get through."""
    if not profile.onboarding_completed:
        raise RedirectRequired(
            "Complete your profile to continue",
            redirect_for(profile.onboarding_step, profile.role)
        )
    return profile

async def only_onboarding(
    profile: Profile = Depends(get_current_profile)
) -> Profile:
    """Onboarding screens are closed once onboarding is complete."""
    if profile.onboarding_completed:
        raise RedirectRequired(
            "Onboarding already completed",
            DASHBOARD_PATH,
            status_code=status.HTTP_409_CONFLICT
        )
    return profile

def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires an onboarded user with one of the roles."""
    async def role_checker(
        profile: Profile = Depends(require_onboarding)
    ) -> Profile:
        if profile.role not in allowed_roles:
            raise RedirectRequired(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}",
                DASHBOARD_PATH
            )
        return profile

    return role_checker

get_doctor_profile = require_role([UserRole.DOCTOR])
get_patient_profile = require_role([UserRole.PATIENT])

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client=Depends(get_redis)
) -> None:
    """Basic rate limiting for unauthenticated account endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)
    else:
        if int(current_requests) >= settings.RATE_LIMIT_PER_HOUR:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
