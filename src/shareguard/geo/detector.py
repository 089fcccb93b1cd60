"""Geo Anomaly Detector - flags physically impossible travel between logins.

Each check compares the current login's resolved location with the user's
last known location, then unconditionally replaces the last known location.
Detection is therefore always relative to the immediately preceding login.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

import numpy as np

from shareguard.common.constants import GeoConstants
from shareguard.common.exceptions import DependencyUnavailable
from shareguard.data.schemas import GeoCheckResult, GeoLocation, LocationHistoryEntry
from shareguard.geo.resolver import GeoResolver
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    phi1, lam1, phi2, lam2 = np.radians([lat1, lon1, lat2, lon2])
    a = (
        np.sin((phi2 - phi1) / 2) ** 2
        + np.cos(phi1) * np.cos(phi2) * np.sin((lam2 - lam1) / 2) ** 2
    )
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return float(GeoConstants.EARTH_RADIUS_KM * c)


def min_travel_ms(distance_km: float) -> float:
    """Minimum time to cover a distance at commercial flight speed, in ms."""
    return distance_km / GeoConstants.FLIGHT_SPEED_KMH * 3600 * 1000


class GeoAnomalyDetector:
    """Tracks last known location per user and scores location jumps."""

    def __init__(
        self,
        store: KeyedStore,
        resolver: GeoResolver,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize detector.

        Args:
            store: Keyed store holding last locations and history
            resolver: IP geolocation backend
            clock: Returns epoch seconds. Defaults to time.time.
        """
        self._store = store
        self._resolver = resolver
        self._clock = clock or time.time

    @staticmethod
    def _last_location_key(user_id: str) -> str:
        return f"user:{user_id}:last_location"

    @staticmethod
    def _history_key(user_id: str) -> str:
        return f"user:{user_id}:location_history"

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def resolve(self, ip_address: str) -> Optional[GeoLocation]:
        """Resolve an IP, treating backend failures as an unknown location."""
        if not ip_address:
            return None
        try:
            return self._resolver.resolve(ip_address)
        except DependencyUnavailable as e:
            logger.warning(
                "Geo resolver unavailable, treating location as unknown",
                extra={"ip_address": ip_address, "error": e.message},
            )
            return None

    def check(self, user_id: str, ip_address: str) -> GeoCheckResult:
        """Compare this login's location with the previous one.

        Args:
            user_id: User logging in
            ip_address: Client IP of this login

        Returns:
            GeoCheckResult. Never raises for lookup or store failures; those
            yield a zero-risk result.
        """
        resolved = self.resolve(ip_address)
        if resolved is None:
            return GeoCheckResult(reason="Could not determine location")

        current = resolved.model_copy(update={"captured_at": self._now()})
        key = self._last_location_key(user_id)

        try:
            raw_last = self._store.get(key)
            self._store.set(key, current.model_dump_json(), ttl=GeoConstants.LAST_LOCATION_TTL)
        except DependencyUnavailable as e:
            logger.warning(
                "Store unavailable during geo check",
                extra={"user_id": user_id, "error": e.message},
            )
            return GeoCheckResult(reason="Could not determine location", current_location=current)

        if raw_last is None:
            return GeoCheckResult(reason="First location recorded", current_location=current)

        last = GeoLocation.model_validate_json(raw_last)
        return self._evaluate(last, current)

    def _evaluate(self, last: GeoLocation, current: GeoLocation) -> GeoCheckResult:
        distance = haversine_km(last.latitude, last.longitude, current.latitude, current.longitude)
        last_seen = last.captured_at or current.captured_at
        elapsed_ms = (current.captured_at - last_seen).total_seconds() * 1000
        elapsed_minutes = elapsed_ms / 60000

        is_impossible = (
            elapsed_ms < min_travel_ms(distance)
            and distance > GeoConstants.IMPOSSIBLE_MIN_DISTANCE_KM
        )

        # Tiers are mutually exclusive; first match wins
        if is_impossible:
            risk = GeoConstants.RISK_IMPOSSIBLE
            reason = f"Impossible travel: {distance:.0f}km in {elapsed_minutes:.0f} minutes"
        elif (
            distance > GeoConstants.LONG_HAUL_DISTANCE_KM
            and elapsed_ms < GeoConstants.LONG_HAUL_WINDOW_MS
        ):
            risk = GeoConstants.RISK_LONG_HAUL
            reason = "Suspicious: Long distance travel in short time"
        elif last.country != current.country:
            risk = GeoConstants.RISK_COUNTRY_CHANGE
            reason = f"Country changed: {last.country} -> {current.country}"
        elif distance > GeoConstants.LOCAL_MOVE_DISTANCE_KM:
            risk = GeoConstants.RISK_LOCAL_MOVE
            reason = f"Location changed by {distance:.0f}km"
        else:
            risk = 0
            reason = ""

        if is_impossible:
            logger.warning(
                "Impossible travel detected",
                extra={
                    "distance_km": round(distance, 2),
                    "elapsed_minutes": round(elapsed_minutes, 1),
                    "from_country": last.country,
                    "to_country": current.country,
                },
            )

        return GeoCheckResult(
            is_impossible=is_impossible,
            reason=reason,
            risk_score=risk,
            current_location=current,
            last_location=last,
            distance_km=round(distance, 2),
            elapsed_minutes=round(elapsed_minutes, 1),
        )

    def record_history(self, user_id: str, ip_address: str, device_id: str) -> None:
        """Append this login's location to the user's bounded history.

        The history is most-recent-first and is not read by check().
        """
        location = self.resolve(ip_address)
        if location is None:
            return

        entry = LocationHistoryEntry(
            device_id=device_id,
            country=location.country,
            city=location.city,
            ip_address=ip_address,
            captured_at=self._now(),
        )
        key = self._history_key(user_id)
        try:
            self._store.lpush(key, entry.model_dump_json())
            self._store.ltrim(key, 0, GeoConstants.HISTORY_SIZE - 1)
            self._store.expire(key, GeoConstants.HISTORY_TTL)
        except DependencyUnavailable as e:
            logger.warning(
                "Could not record location history",
                extra={"user_id": user_id, "error": e.message},
            )

    def history(self, user_id: str, limit: int = GeoConstants.HISTORY_SIZE) -> List[LocationHistoryEntry]:
        """Read the location history, most recent first."""
        raw = self._store.lrange(self._history_key(user_id), 0, limit - 1)
        return [LocationHistoryEntry.model_validate(json.loads(item)) for item in raw]

    def location_change_count(
        self,
        user_id: str,
        window_seconds: int = GeoConstants.LOCATION_CHANGE_WINDOW_SECONDS,
    ) -> int:
        """Count country transitions in the history within a time window."""
        cutoff = self._clock() - window_seconds
        try:
            recent = [
                entry for entry in self.history(user_id)
                if entry.captured_at.timestamp() >= cutoff
            ]
        except DependencyUnavailable:
            return 0

        # History is newest first; compare consecutive entries
        changes = 0
        for newer, older in zip(recent, recent[1:]):
            if newer.country != older.country:
                changes += 1
        return changes
