"""Trust Scorer - confidence that a user/device/network combination is legitimate.

Score = base 50 + seven independent sub-scores, clamped to [0, 100]:

    login_frequency   0..20   how often this device has logged in
    device_age        0..15   days since the device was first approved
    geo_consistency -10..25   how stable the device's country set is
    failed_attempts -30..0    recent failed logins on this device
    login_hour      -10..0    wall-clock hour in the unusual window
    device_sharing  -25..0    distinct users seen on this device
    network_origin  -15..0    private/internal address ranges

The network-origin check is a placeholder for an IP reputation or VPN
lookup; private ranges are a weak signal, not a security guarantee.
"""

import ipaddress
import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from shareguard.common.constants import DAY_SECONDS, TrustConstants
from shareguard.common.exceptions import DependencyUnavailable
from shareguard.data.schemas import TrustFactor, TrustLevel, TrustScoreRecord
from shareguard.geo.resolver import GeoResolver
from shareguard.persistence.repository import DeviceRepository
from shareguard.store.base import KeyedStore
from shareguard.trust.signals import DeviceSignals

logger = logging.getLogger(__name__)


_PRIVATE_NETWORKS = tuple(ipaddress.ip_network(n) for n in TrustConstants.PRIVATE_NETWORKS)


def bucket(value: float, buckets: Sequence[Tuple[float, int]], top: int) -> int:
    """Map a value onto points using (exclusive upper bound, points) pairs."""
    for bound, points in buckets:
        if value < bound:
            return points
    return top


def trust_level(score: int) -> TrustLevel:
    if score >= TrustConstants.HIGH_MIN:
        return TrustLevel.HIGH
    if score >= TrustConstants.MEDIUM_MIN:
        return TrustLevel.MEDIUM
    if score >= TrustConstants.LOW_MIN:
        return TrustLevel.LOW
    return TrustLevel.CRITICAL


def is_private_address(ip_address: str) -> bool:
    try:
        address = ipaddress.ip_address(ip_address)
    except ValueError:
        return False
    return any(address in network for network in _PRIVATE_NETWORKS)


class TrustScorer:
    """Computes and caches per (user, device) trust scores."""

    def __init__(
        self,
        store: KeyedStore,
        devices: DeviceRepository,
        resolver: GeoResolver,
        clock: Optional[Callable[[], float]] = None,
        scoring_timezone: str = "UTC",
    ):
        """Initialize scorer.

        Args:
            store: Keyed store holding device signals and the score cache
            devices: Device repository (first-seen timestamps)
            resolver: IP geolocation for the geo consistency sub-score
            clock: Returns epoch seconds. Defaults to time.time.
            scoring_timezone: IANA zone used for the unusual-hour check
        """
        self._store = store
        self._devices = devices
        self._resolver = resolver
        self._clock = clock or time.time
        self._tz = ZoneInfo(scoring_timezone)
        self.signals = DeviceSignals(store)

    @staticmethod
    def _cache_key(user_id: str, device_id: str) -> str:
        return f"trust:{user_id}:{device_id}"

    def score(self, user_id: str, device_id: str, ip_address: str) -> TrustScoreRecord:
        """Compute a fresh trust score and overwrite the cached one.

        Sub-scores whose backing store or lookup fails contribute 0.
        """
        components: List[Tuple[str, Callable[[], int]]] = [
            ("login_frequency", lambda: self._login_frequency(device_id)),
            ("device_age", lambda: self._device_age(user_id, device_id)),
            ("geo_consistency", lambda: self._geo_consistency(device_id, ip_address)),
            ("failed_attempts", lambda: self._failed_attempts(device_id)),
            ("login_hour", self._login_hour),
            ("device_sharing", lambda: self._device_sharing(device_id)),
            ("network_origin", lambda: self._network_origin(ip_address)),
        ]

        factors: List[TrustFactor] = []
        for name, compute in components:
            try:
                contribution = compute()
            except DependencyUnavailable as e:
                logger.warning(
                    f"Trust sub-score {name} degraded to 0",
                    extra={"device_id": device_id, "error": e.message},
                )
                contribution = 0
            factors.append(TrustFactor(name=name, contribution=contribution))

        total = TrustConstants.BASE_SCORE + sum(f.contribution for f in factors)
        total = max(TrustConstants.MIN_SCORE, min(TrustConstants.MAX_SCORE, total))

        record = TrustScoreRecord(
            score=total,
            level=trust_level(total),
            factors=factors,
            computed_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )

        try:
            self._store.set(
                self._cache_key(user_id, device_id),
                record.model_dump_json(),
                ttl=TrustConstants.SCORE_CACHE_TTL,
            )
        except DependencyUnavailable as e:
            logger.warning("Could not cache trust score", extra={"error": e.message})

        logger.debug(
            "Trust score computed",
            extra={"user_id": user_id, "device_id": device_id, "score": total},
        )
        return record

    def cached(self, user_id: str, device_id: str) -> Optional[TrustScoreRecord]:
        """Most recent score for (user, device), if still cached."""
        raw = self._store.get(self._cache_key(user_id, device_id))
        if raw is None:
            return None
        return TrustScoreRecord.model_validate_json(raw)

    # ----- sub-scores -----

    def _login_frequency(self, device_id: str) -> int:
        return bucket(
            self.signals.login_count(device_id),
            TrustConstants.LOGIN_COUNT_BUCKETS,
            TrustConstants.LOGIN_COUNT_MAX_POINTS,
        )

    def _device_age(self, user_id: str, device_id: str) -> int:
        device = self._devices.get(user_id, device_id)
        if device is None:
            return 0
        created = device.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        age_days = (self._clock() - created.timestamp()) / DAY_SECONDS
        return bucket(
            age_days,
            TrustConstants.DEVICE_AGE_BUCKETS_DAYS,
            TrustConstants.DEVICE_AGE_MAX_POINTS,
        )

    def _geo_consistency(self, device_id: str, ip_address: str) -> int:
        location = self._resolver.resolve(ip_address) if ip_address else None
        if location is None:
            return 0

        countries = self.signals.countries(device_id)
        if not countries:
            self.signals.add_country(device_id, location.country, refresh_ttl=True)
            return 10

        if location.country in countries:
            if len(countries) == 1:
                return 25
            if len(countries) == 2:
                return 15
            return 5

        self.signals.add_country(device_id, location.country)
        return -10 if len(countries) > 3 else 0

    def _failed_attempts(self, device_id: str) -> int:
        failures = self.signals.failed_attempts(device_id)
        if failures == 0:
            return 0
        if failures <= 2:
            return -5
        if failures <= 5:
            return -15
        return -30

    def _login_hour(self) -> int:
        hour = datetime.fromtimestamp(self._clock(), tz=self._tz).hour
        if TrustConstants.UNUSUAL_HOUR_START <= hour <= TrustConstants.UNUSUAL_HOUR_END:
            return TrustConstants.UNUSUAL_HOUR_PENALTY
        return 0

    def _device_sharing(self, device_id: str) -> int:
        users = len(self.signals.device_users(device_id))
        if users <= 1:
            return 0
        if users == 2:
            return -10
        return -25

    def _network_origin(self, ip_address: str) -> int:
        if ip_address and is_private_address(ip_address):
            return TrustConstants.PRIVATE_NETWORK_PENALTY
        return 0
