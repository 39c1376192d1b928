from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime, timedelta
import hashlib
import logging

from ..models.user import User, RefreshToken
from ..models.profile import Profile, OnboardingStep
from ..core.config import settings
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, generate_password_reset_token
)
from ..schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse,
    OAuthUserInfo, PasswordResetConfirm
)
from .session_service import SessionTracker

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session, redis_client=None):
        self.db = db
        self.sessions = SessionTracker(redis_client) if redis_client is not None else None

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new user together with a baseline profile."""
        existing_user = self.db.query(User).filter(
            User.email == user_data.email
        ).first()

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        new_user = User(
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role,
            is_active=True,
            is_verified=False
        )
        self.db.add(new_user)
        self.db.flush()

        self.db.add(self._baseline_profile(new_user, user_data.full_name))
        self.db.commit()
        self.db.refresh(new_user)

        logger.info(f"Registered user {new_user.id}")
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        # Check account lockout
        if user.locked_until and user.locked_until > datetime.utcnow():
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail="Account is temporarily locked"
            )

        if not user.password_hash or not verify_password(
            login_data.password, user.password_hash
        ):
            self._handle_failed_login(user)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = datetime.utcnow()

        return self._issue_tokens(user)

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Rotate the refresh token and issue a new pair."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash,
            RefreshToken.is_revoked == False,  # noqa: E712
            RefreshToken.expires_at > datetime.utcnow()
        ).first()

        if not stored_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired refresh token"
            )

        user = self.db.query(User).filter(
            User.id == token_payload.sub
        ).first()

        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        # An idle session cannot be revived with its refresh token
        if self.sessions and not self.sessions.touch(user.id):
            self.expire_session(user.id)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Session expired due to inactivity"
            )

        stored_token.is_revoked = True
        return self._issue_tokens(user)

    def logout_user(self, refresh_token: str) -> bool:
        """Logout user by revoking refresh token and ending the session."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()
        stored_token = self.db.query(RefreshToken).filter(
            RefreshToken.token_hash == token_hash
        ).first()

        if not stored_token:
            return False

        stored_token.is_revoked = True
        self.db.commit()
        if self.sessions:
            self.sessions.end(stored_token.user_id)
        return True

    def expire_session(self, user_id: int):
        """End a session that went idle: every refresh token is revoked."""
        self.revoke_all_tokens(user_id)
        self.db.commit()
        if self.sessions:
            self.sessions.end(user_id)

    def oauth_login(self, oauth_data: OAuthUserInfo) -> TokenResponse:
        """Handle OAuth login/registration."""
        user = self.db.query(User).filter(
            User.oauth_provider == oauth_data.provider,
            User.oauth_id == oauth_data.oauth_id
        ).first()

        if not user:
            user = self.db.query(User).filter(
                User.email == oauth_data.email
            ).first()

            if user:
                # Link OAuth account to existing user
                user.oauth_provider = oauth_data.provider
                user.oauth_id = oauth_data.oauth_id
            else:
                # Role is picked during onboarding
                user = User(
                    email=oauth_data.email,
                    oauth_provider=oauth_data.provider,
                    oauth_id=oauth_data.oauth_id,
                    is_active=True,
                    is_verified=True  # OAuth users are pre-verified
                )
                self.db.add(user)
                self.db.flush()
                profile = self._baseline_profile(user, oauth_data.full_name)
                profile.avatar_url = oauth_data.avatar_url
                self.db.add(profile)

        user.last_login = datetime.utcnow()
        return self._issue_tokens(user)

    def request_password_reset(self, email: str) -> bool:
        """Generate password reset token."""
        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            # Don't reveal if email exists
            return True

        user.password_reset_token = generate_password_reset_token()
        user.password_reset_expires = datetime.utcnow() + timedelta(hours=1)
        self.db.commit()

        # TODO: deliver the reset link by email once SMTP settings are wired
        logger.info(f"Password reset requested for user {user.id}")
        return True

    def reset_password(self, reset_data: PasswordResetConfirm) -> bool:
        """Reset password using reset token."""
        user = self.db.query(User).filter(
            User.password_reset_token == reset_data.token,
            User.password_reset_expires > datetime.utcnow()
        ).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid or expired reset token"
            )

        user.password_hash = get_password_hash(reset_data.new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.failed_login_attempts = 0
        user.locked_until = None

        self.revoke_all_tokens(user.id)
        self.db.commit()
        return True

    def change_password(self, user: User, current_password: str, new_password: str) -> bool:
        if not user.password_hash or not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        user.password_hash = get_password_hash(new_password)
        self.db.commit()
        return True

    def revoke_all_tokens(self, user_id: int):
        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

    def _issue_tokens(self, user: User) -> TokenResponse:
        tokens = create_token_pair(user.id, user.email, user.role)
        self._store_refresh_token(user.id, tokens.refresh_token)
        self.db.commit()
        self.db.refresh(user)

        if self.sessions:
            self.sessions.start(user.id)

        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            refresh_in=tokens.refresh_in,
            user=UserResponse.model_validate(user)
        )

    def _baseline_profile(self, user: User, full_name=None) -> Profile:
        return Profile(
            id=user.id,
            email=user.email,
            full_name=full_name,
            onboarding_step=OnboardingStep.BASIC if user.role else OnboardingStep.ROLE,
            onboarding_completed=False
        )

    def _handle_failed_login(self, user: User):
        """Count a failed attempt and lock the account past the limit."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = datetime.utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning(f"User {user.id} locked after {user.failed_login_attempts} failed logins")

        self.db.commit()

    def _store_refresh_token(self, user_id: int, refresh_token: str):
        """Store refresh token in database."""
        token_hash = hashlib.sha256(refresh_token.encode()).hexdigest()

        token_payload = verify_token(refresh_token)
        expires_at = datetime.utcfromtimestamp(token_payload.exp) if token_payload and token_payload.exp else datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        # One live refresh token per user
        self.revoke_all_tokens(user_id)

        self.db.add(RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at
        ))
