"""Dashboard - read projections for the admin surface.

Everything here is computed on demand from the session registry, cached
trust scores, the alert store and the repositories. Nothing is pushed.
"""

import logging
import time
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from shareguard.alerts.store import AlertStore, FlagRegistry
from shareguard.auth.suspensions import Suspensions
from shareguard.common.constants import DashboardConstants, SessionConstants
from shareguard.common.exceptions import ValidationError
from shareguard.data.schemas import GeoLocation, Plan, TrustLevel
from shareguard.geo.detector import GeoAnomalyDetector
from shareguard.persistence.repository import (
    DeviceRepository,
    SessionLogRepository,
    UserRepository,
)
from shareguard.sessions.registry import SessionRegistry, max_sessions_for
from shareguard.trust.scorer import TrustScorer, trust_level

logger = logging.getLogger(__name__)


class ActiveSessionView(BaseModel):
    user_id: str
    email: str
    plan: Plan
    device_id: str
    trust_score: int
    trust_level: TrustLevel
    location: Optional[GeoLocation] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    last_activity: datetime
    device_trusted: Optional[bool] = None
    device_first_seen: Optional[datetime] = None


class RecentActivity(BaseModel):
    email: str
    action: str = "Active Session"
    device_id: str = Field(..., description="First 8 characters of the device id")
    timestamp: datetime
    trust_score: int


class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    total_sessions: int
    avg_trust_score: int
    suspicious_count: int
    shared_devices: int
    plan_distribution: Dict[str, int]
    revenue_leakage: int


class DashboardSnapshot(BaseModel):
    active_sessions: List[ActiveSessionView]
    by_plan: Dict[str, int]
    by_trust_level: Dict[str, int]
    geo_distribution: Dict[str, int]
    recent_activity: List[RecentActivity]
    stats: DashboardStats
    generated_at: datetime


def estimate_revenue_leakage(sessions: List[ActiveSessionView]) -> int:
    """Rough monthly revenue lost to sharing.

    Each session over a user's plan limit counts as a full lost
    subscription; each low-trust session counts as half of one.
    """
    by_user: Dict[str, List[ActiveSessionView]] = defaultdict(list)
    for session in sessions:
        by_user[session.user_id].append(session)

    leakage = 0.0
    for user_sessions in by_user.values():
        plan = user_sessions[0].plan
        price = SessionConstants.PLAN_PRICES.get(plan.value, 0)
        extra = len(user_sessions) - max_sessions_for(plan)
        if extra > 0:
            leakage += price * extra
        low_trust = [s for s in user_sessions if s.trust_score < DashboardConstants.LEAKAGE_TRUST_MAX]
        leakage += price * 0.5 * len(low_trust)
    return int(round(leakage))


class Dashboard:
    """Admin queries and admin-initiated actions."""

    def __init__(
        self,
        users: UserRepository,
        devices: DeviceRepository,
        session_log: SessionLogRepository,
        sessions: SessionRegistry,
        trust: TrustScorer,
        geo: GeoAnomalyDetector,
        alerts: AlertStore,
        flags: FlagRegistry,
        suspensions: Suspensions,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._users = users
        self._devices = devices
        self._session_log = session_log
        self._sessions = sessions
        self._trust = trust
        self._geo = geo
        self._alerts = alerts
        self._flags = flags
        self._suspensions = suspensions
        self._clock = clock or time.time

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def active_sessions(self) -> List[ActiveSessionView]:
        views: List[ActiveSessionView] = []
        for user in self._users.list_all():
            for session in self._sessions.list_active(user.user_id):
                cached = self._trust.cached(user.user_id, session.device_id)
                score = cached.score if cached else DashboardConstants.DEFAULT_TRUST_SCORE
                device = self._devices.get(user.user_id, session.device_id)
                views.append(
                    ActiveSessionView(
                        user_id=user.user_id,
                        email=user.email,
                        plan=user.plan,
                        device_id=session.device_id,
                        trust_score=score,
                        trust_level=trust_level(score),
                        location=session.location,
                        ip_address=session.ip_address,
                        user_agent=session.user_agent,
                        created_at=session.created_at,
                        last_activity=session.last_activity,
                        device_trusted=device.trusted if device else None,
                        device_first_seen=device.created_at if device else None,
                    )
                )
        return views

    def snapshot(self) -> DashboardSnapshot:
        """Point-in-time view of every active session plus aggregate stats."""
        sessions = self.active_sessions()
        users = self._users.list_all()

        by_plan = {plan.value: 0 for plan in Plan}
        by_trust_level = {level.value: 0 for level in TrustLevel}
        geo_distribution: Dict[str, int] = {}
        device_users: Dict[str, Set[str]] = defaultdict(set)
        recent: List[RecentActivity] = []
        cutoff = self._clock() - DashboardConstants.RECENT_ACTIVITY_WINDOW_SECONDS

        for s in sessions:
            by_plan[s.plan.value] += 1
            by_trust_level[s.trust_level.value] += 1
            if s.location is not None:
                geo_distribution[s.location.country] = geo_distribution.get(s.location.country, 0) + 1
            device_users[s.device_id].add(s.user_id)
            if s.last_activity.timestamp() > cutoff:
                recent.append(
                    RecentActivity(
                        email=s.email,
                        device_id=s.device_id[:8],
                        timestamp=s.last_activity,
                        trust_score=s.trust_score,
                    )
                )

        recent.sort(key=lambda r: r.timestamp, reverse=True)

        plan_distribution = {plan.value: 0 for plan in Plan}
        for user in users:
            plan_distribution[user.plan.value] += 1

        avg = sum(s.trust_score for s in sessions) / len(sessions) if sessions else 0
        stats = DashboardStats(
            total_users=len(users),
            active_users=len({s.user_id for s in sessions}),
            total_sessions=len(sessions),
            avg_trust_score=int(round(avg)),
            suspicious_count=sum(
                1 for s in sessions if s.trust_score < DashboardConstants.SUSPICIOUS_TRUST_MAX
            ),
            shared_devices=sum(1 for ids in device_users.values() if len(ids) > 1),
            plan_distribution=plan_distribution,
            revenue_leakage=estimate_revenue_leakage(sessions),
        )

        return DashboardSnapshot(
            active_sessions=sessions,
            by_plan=by_plan,
            by_trust_level=by_trust_level,
            geo_distribution=geo_distribution,
            recent_activity=recent[:DashboardConstants.RECENT_ACTIVITY_LIMIT],
            stats=stats,
            generated_at=self._now(),
        )

    def user_detail(self, user_id: str) -> Optional[Dict[str, Any]]:
        user = self._users.get_by_id(user_id)
        if user is None:
            return None
        return {
            "user": {
                "id": user.user_id,
                "email": user.email,
                "plan": user.plan.value,
                "created_at": user.created_at,
            },
            "sessions": [
                {
                    "device_id": s.device_id,
                    "created_at": s.created_at,
                    "last_activity": s.last_activity,
                    "trust_score": s.trust_score,
                }
                for s in self._sessions.list_active(user_id)
            ],
            "devices": [
                {
                    "device_id": d.device_id,
                    "trusted": d.trusted,
                    "first_seen": d.created_at,
                    "last_login": d.last_login,
                }
                for d in self._devices.list_for_user(user_id)
            ],
            "location_history": [e.model_dump() for e in self._geo.history(user_id)],
            "flag": self._flags.get(user_id),
            "suspended": self._suspensions.is_blocked(user_id),
            "alerts": [a.model_dump() for a in self._alerts.for_user(user_id)],
        }

    def terminate_session(self, user_id: str, device_id: str) -> bool:
        removed = self._sessions.delete(user_id, device_id)
        self._session_log.deactivate(user_id, device_id)
        logger.info("Admin terminated session", extra={"user_id": user_id, "device_id": device_id})
        return removed

    def block_user(self, user_id: str, seconds: int) -> Dict[str, Any]:
        """Suspend a user and terminate all their sessions."""
        if seconds <= 0:
            raise ValidationError("duration must be positive", details={"duration": seconds})
        self._suspensions.block(user_id, seconds)
        for session in self._sessions.list_active(user_id):
            self._session_log.deactivate(user_id, session.device_id)
        terminated = self._sessions.delete_all(user_id)
        return {
            "user_id": user_id,
            "duration": seconds,
            "terminated_sessions": terminated,
            "expires_at": self._now() + timedelta(seconds=seconds),
        }

    def suspicious_report(self) -> Dict[str, Any]:
        """Active sessions with trust below the leakage threshold."""
        suspicious = [
            s for s in self.active_sessions()
            if s.trust_score < DashboardConstants.LEAKAGE_TRUST_MAX
        ]
        by_level: Dict[str, int] = {}
        for s in suspicious:
            by_level[s.trust_level.value] = by_level.get(s.trust_level.value, 0) + 1
        return {
            "total": len(suspicious),
            "by_trust_level": by_level,
            "users": [
                {
                    "email": s.email,
                    "device_id": s.device_id[:8],
                    "trust_score": s.trust_score,
                    "location": s.location.model_dump() if s.location else None,
                    "last_activity": s.last_activity,
                }
                for s in suspicious
            ],
        }

    def revenue_leakage_report(self) -> Dict[str, Any]:
        stats = self.snapshot().stats
        return {
            "total_leakage": stats.revenue_leakage,
            "shared_devices": stats.shared_devices,
            "suspicious_accounts": stats.suspicious_count,
            "recommendations": [
                f"Monitor accounts with trust scores below {DashboardConstants.SUSPICIOUS_TRUST_MAX}",
                f"{stats.shared_devices} devices are being shared across accounts",
                "Consider enforcing stricter device limits for BASIC plan users",
            ],
        }

    def sessions_timeline(self, hours: int = 24) -> List[Dict[str, Any]]:
        """Session creations per hour bucket over the last `hours` hours."""
        since = self._now() - timedelta(hours=hours)
        buckets: Dict[str, int] = defaultdict(int)
        for entry in self._session_log.created_after(since):
            created = entry.created_at
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            buckets[created.astimezone(timezone.utc).strftime("%Y-%m-%d %H:00")] += 1
        return [{"time": key, "count": buckets[key]} for key in sorted(buckets)]
