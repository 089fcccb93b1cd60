"""Device Signals - typed accessors over per-device counters and sets.

Key layout:
    device:{id}:login_count      counter, 90 day TTL
    device:{id}:failed_attempts  counter, 1 hour TTL
    device:{id}:users            set of user ids, 30 day TTL
    device:{id}:countries        set of ISO country codes, 30 day TTL
"""

from typing import Set

from shareguard.common.constants import TrustConstants
from shareguard.store.base import KeyedStore


class DeviceSignals:
    """Reads and writes the history signals the trust scorer consumes."""

    def __init__(self, store: KeyedStore):
        self._store = store

    # ----- login count -----

    def increment_login_count(self, device_id: str) -> int:
        return self._store.incr(
            f"device:{device_id}:login_count", ttl=TrustConstants.LOGIN_COUNT_TTL
        )

    def login_count(self, device_id: str) -> int:
        return int(self._store.get(f"device:{device_id}:login_count") or 0)

    # ----- failed attempts -----

    def record_failed_attempt(self, device_id: str) -> int:
        return self._store.incr(
            f"device:{device_id}:failed_attempts", ttl=TrustConstants.FAILED_ATTEMPTS_TTL
        )

    def failed_attempts(self, device_id: str) -> int:
        return int(self._store.get(f"device:{device_id}:failed_attempts") or 0)

    # ----- device sharing -----

    def track_device_user(self, device_id: str, user_id: str) -> None:
        key = f"device:{device_id}:users"
        self._store.sadd(key, str(user_id))
        self._store.expire(key, TrustConstants.DEVICE_USERS_TTL)

    def device_users(self, device_id: str) -> Set[str]:
        return self._store.smembers(f"device:{device_id}:users")

    # ----- countries -----

    def countries(self, device_id: str) -> Set[str]:
        return self._store.smembers(f"device:{device_id}:countries")

    def add_country(self, device_id: str, country: str, refresh_ttl: bool = False) -> None:
        """Record a country for a device.

        Args:
            device_id: Device identifier
            country: ISO country code
            refresh_ttl: Reset the 30 day expiry. Only the first observation
                starts the window; later additions leave it running.
        """
        key = f"device:{device_id}:countries"
        self._store.sadd(key, country)
        if refresh_ttl:
            self._store.expire(key, TrustConstants.COUNTRIES_TTL)
