"""Alert Store - append-only alert records and manual-review flags.

Key layout:
    alert:{ts_ms}:{alert_id}   JSON AlertRecord, 7 day TTL
    alerts:sorted              ranked index of alert keys by timestamp, capped
    user:{id}:flagged          JSON flag details, 30 day TTL
    flagged_users              set of flagged user ids
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from shareguard.common.constants import AlertConstants, DAY_SECONDS
from shareguard.data.schemas import AlertRecord, Severity
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)


class AlertStore:
    """Persists triggered alerts and serves the read APIs."""

    def __init__(self, store: KeyedStore, clock: Optional[Callable[[], float]] = None):
        self._store = store
        self._clock = clock or time.time

    def save(self, alert: AlertRecord) -> str:
        """Persist an alert and index it by recency.

        Returns:
            The key the alert was stored under
        """
        ts_ms = int(alert.timestamp.timestamp() * 1000)
        key = f"alert:{ts_ms}:{alert.alert_id}"
        self._store.set(key, alert.model_dump_json(), ttl=AlertConstants.RETENTION_SECONDS)
        self._store.zadd(AlertConstants.INDEX_KEY, ts_ms, key)
        # Keep only the newest INDEX_CAP entries
        self._store.zremrangebyrank(AlertConstants.INDEX_KEY, 0, -(AlertConstants.INDEX_CAP + 1))
        return key

    def index_size(self) -> int:
        return self._store.zcard(AlertConstants.INDEX_KEY)

    def recent(self, limit: int = AlertConstants.DEFAULT_RECENT_LIMIT) -> List[AlertRecord]:
        """Most recent alerts, newest first. Expired records are skipped."""
        if limit <= 0:
            return []
        alerts: List[AlertRecord] = []
        for key in self._store.zrevrange(AlertConstants.INDEX_KEY, 0, limit - 1):
            raw = self._store.get(key)
            if raw is not None:
                alerts.append(AlertRecord.model_validate_json(raw))
        return alerts

    def by_severity(
        self,
        severity: Severity,
        limit: int = AlertConstants.DEFAULT_RECENT_LIMIT,
    ) -> List[AlertRecord]:
        """Recent alerts of one severity, searched within the last 2*limit alerts."""
        severity = Severity(severity)
        return [a for a in self.recent(limit * 2) if a.severity == severity][:limit]

    def for_user(
        self,
        user_id: str,
        limit: int = AlertConstants.DEFAULT_USER_LIMIT,
    ) -> List[AlertRecord]:
        """Recent alerts about one user, searched within the last STATS_WINDOW alerts."""
        return [
            a for a in self.recent(AlertConstants.STATS_WINDOW)
            if a.context.user_id == user_id
        ][:limit]

    def stats(self) -> Dict[str, Any]:
        """Aggregates over the last STATS_WINDOW alerts."""
        alerts = self.recent(AlertConstants.STATS_WINDOW)
        by_severity = {severity.value: 0 for severity in Severity}
        by_rule: Dict[str, int] = {}
        cutoff = self._clock() - DAY_SECONDS
        last_24_hours = 0

        for alert in alerts:
            by_severity[alert.severity.value] += 1
            by_rule[alert.rule_id] = by_rule.get(alert.rule_id, 0) + 1
            if alert.timestamp.timestamp() > cutoff:
                last_24_hours += 1

        return {
            "total": len(alerts),
            "by_severity": by_severity,
            "by_rule": by_rule,
            "last_24_hours": last_24_hours,
            "flagged_users": self._store.scard(AlertConstants.FLAGGED_USERS_KEY),
        }


class FlagRegistry:
    """Marks users for manual review."""

    def __init__(self, store: KeyedStore, clock: Optional[Callable[[], float]] = None):
        self._store = store
        self._clock = clock or time.time

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user:{user_id}:flagged"

    def flag(self, user_id: str, reason: str, severity: Severity) -> None:
        data = {
            "reason": reason,
            "severity": Severity(severity).value,
            "flagged_at": datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
        }
        self._store.set(self._key(user_id), json.dumps(data), ttl=AlertConstants.FLAG_TTL)
        self._store.sadd(AlertConstants.FLAGGED_USERS_KEY, str(user_id))

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Flag details, or None if the user is not flagged."""
        if not self._store.sismember(AlertConstants.FLAGGED_USERS_KEY, str(user_id)):
            return None
        raw = self._store.get(self._key(user_id))
        # The details can expire before the set membership is cleared
        return json.loads(raw) if raw else {"flagged": True}

    def clear(self, user_id: str) -> None:
        self._store.srem(AlertConstants.FLAGGED_USERS_KEY, str(user_id))
        self._store.delete(self._key(user_id))

    def count(self) -> int:
        return self._store.scard(AlertConstants.FLAGGED_USERS_KEY)
