"""Session Registry - active (user, device) sessions and plan limits.

Key layout:
    session:{user}:{device}   JSON Session, 24h TTL
    user:{user}:sessions      set of device ids with a session

The per-user index may reference sessions that have already expired;
list_active prunes those entries before returning.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from shareguard.common.constants import SessionConstants
from shareguard.data.schemas import GeoLocation, Plan, Session
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)


def max_sessions_for(plan: Any) -> int:
    """Concurrent session limit for a plan. Unknown plans get the default."""
    name = plan.value if isinstance(plan, Plan) else str(plan or "").upper()
    return SessionConstants.PLAN_LIMITS.get(name, SessionConstants.DEFAULT_LIMIT)


class SessionRegistry:
    """Tracks active sessions per user in the keyed store."""

    def __init__(self, store: KeyedStore, clock: Optional[Callable[[], float]] = None):
        self._store = store
        self._clock = clock or time.time

    @staticmethod
    def _session_key(user_id: str, device_id: str) -> str:
        return f"session:{user_id}:{device_id}"

    @staticmethod
    def _index_key(user_id: str) -> str:
        return f"user:{user_id}:sessions"

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _save(self, session: Session) -> None:
        self._store.set(
            self._session_key(session.user_id, session.device_id),
            session.model_dump_json(),
            ttl=SessionConstants.SESSION_TTL,
        )

    def create(
        self,
        user_id: str,
        device_id: str,
        token: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Session:
        """Create or replace the session for (user, device).

        Args:
            user_id: Session owner
            device_id: Device the session is bound to
            token: Bearer token issued for the session
            metadata: Optional ip_address, user_agent, trust_score, location

        Returns:
            The stored Session
        """
        metadata = metadata or {}
        location = metadata.get("location")
        if isinstance(location, dict):
            location = GeoLocation.model_validate(location)

        now = self._now()
        session = Session(
            user_id=user_id,
            device_id=device_id,
            token=token,
            ip_address=metadata.get("ip_address"),
            user_agent=metadata.get("user_agent"),
            trust_score=metadata.get("trust_score"),
            location=location,
            created_at=now,
            last_activity=now,
        )
        self._save(session)
        self._store.sadd(self._index_key(user_id), device_id)
        self._store.expire(self._index_key(user_id), SessionConstants.SESSION_TTL)
        return session

    def get(self, user_id: str, device_id: str) -> Optional[Session]:
        raw = self._store.get(self._session_key(user_id, device_id))
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    def list_active(self, user_id: str) -> List[Session]:
        """Live sessions ordered by created_at ascending (oldest first)."""
        sessions: List[Session] = []
        for device_id in self._store.smembers(self._index_key(user_id)):
            session = self.get(user_id, device_id)
            if session is None:
                self._store.srem(self._index_key(user_id), device_id)
            else:
                sessions.append(session)
        return sorted(sessions, key=lambda s: (s.created_at, s.device_id))

    def delete(self, user_id: str, device_id: str) -> bool:
        """Delete a session. Returns True if one existed."""
        removed = self._store.delete(self._session_key(user_id, device_id))
        self._store.srem(self._index_key(user_id), device_id)
        return removed > 0

    def delete_all(self, user_id: str) -> int:
        """Terminate every session of a user. Returns how many were live."""
        removed = 0
        for device_id in self._store.smembers(self._index_key(user_id)):
            if self.delete(user_id, device_id):
                removed += 1
        self._store.delete(self._index_key(user_id))
        return removed

    def touch_activity(self, user_id: str, device_id: str) -> Optional[Session]:
        """Refresh last_activity and the TTLs of the session and the user index.

        created_at and token are preserved and last_activity never moves
        backwards, so repeated calls are safe.
        """
        session = self.get(user_id, device_id)
        if session is None:
            return None
        now = self._now()
        if now > session.last_activity:
            session = session.model_copy(update={"last_activity": now})
        self._save(session)
        self._store.expire(self._index_key(user_id), SessionConstants.SESSION_TTL)
        return session

    def validate(self, user_id: str, device_id: str, token: str) -> bool:
        session = self.get(user_id, device_id)
        return session is not None and session.token == token

    def enforce_and_create(
        self,
        user_id: str,
        device_id: str,
        token: str,
        metadata: Optional[Dict[str, Any]],
        max_sessions: int,
    ) -> Tuple[Session, List[Session]]:
        """Apply the plan limit and create the session atomically per user.

        Other sessions are evicted oldest-created first until fewer than
        max_sessions remain, then the new session is created. An existing
        session for the same device is replaced rather than counted.

        Returns:
            (new session, evicted sessions)

        Raises:
            DependencyUnavailable: If the per-user lock cannot be acquired
        """
        with self._store.lock(
            f"lock:sessions:{user_id}", timeout=SessionConstants.LOCK_TIMEOUT_SECONDS
        ):
            others = [s for s in self.list_active(user_id) if s.device_id != device_id]
            evicted: List[Session] = []
            while others and len(others) >= max_sessions:
                oldest = others.pop(0)
                self.delete(user_id, oldest.device_id)
                evicted.append(oldest)
                logger.info(
                    "Evicted oldest session to respect plan limit",
                    extra={
                        "user_id": user_id,
                        "evicted_device_id": oldest.device_id,
                        "max_sessions": max_sessions,
                    },
                )
            session = self.create(user_id, device_id, token, metadata)
        return session, evicted
