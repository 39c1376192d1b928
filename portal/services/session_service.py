"""Server-side session activity tracking.

Every authenticated request touches a per-user marker in Redis. When the gap
since the previous touch exceeds the inactivity timeout, or the marker is gone
(logout), the session is over: the caller revokes the user's refresh tokens
and asks them to sign in again.
"""
import logging
import time
from typing import Optional

from ..core.config import settings

logger = logging.getLogger(__name__)


def _key(user_id: int) -> str:
    return f"session_activity:{user_id}"


class SessionTracker:
    def __init__(self, redis_client, timeout_minutes: Optional[int] = None):
        self.redis = redis_client
        self.timeout = (timeout_minutes or settings.INACTIVITY_TIMEOUT_MINUTES) * 60
        # Keep markers as long as a refresh token can live
        self.ttl = settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600

    def start(self, user_id: int, now: Optional[float] = None):
        """Mark the beginning of a session (login, OAuth login, refresh)."""
        self._store(user_id, now or time.time())

    def is_active(self, user_id: int) -> bool:
        return self.redis.get(_key(user_id)) is not None

    def touch(self, user_id: int, now: Optional[float] = None) -> bool:
        """Record activity. Returns False when the session is no longer alive."""
        now = now or time.time()
        last_seen = self.redis.get(_key(user_id))

        if last_seen is None:
            return False

        if now - float(last_seen) > self.timeout:
            logger.info(f"Session for user {user_id} expired due to inactivity")
            self.end(user_id)
            return False

        self._store(user_id, now)
        return True

    def end(self, user_id: int):
        self.redis.delete(_key(user_id))

    def _store(self, user_id: int, now: float):
        self.redis.setex(_key(user_id), self.ttl, repr(now))
