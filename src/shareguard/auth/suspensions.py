"""Suspensions - temporary per-user login blocks."""

import logging
from typing import Optional

from shareguard.common.constants import AlertConstants
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)


class Suspensions:
    """Stores suspensions as blocked:{user_id} keys with a TTL."""

    def __init__(self, store: KeyedStore, default_seconds: int = AlertConstants.TEMPORARY_BLOCK_SECONDS):
        self._store = store
        self.default_seconds = default_seconds

    @staticmethod
    def _key(user_id: str) -> str:
        return f"blocked:{user_id}"

    def block(self, user_id: str, seconds: Optional[int] = None) -> None:
        seconds = seconds or self.default_seconds
        self._store.set(self._key(user_id), "1", ttl=seconds)
        logger.warning(
            "User temporarily suspended",
            extra={"user_id": user_id, "seconds": seconds},
        )

    def is_blocked(self, user_id: str) -> bool:
        return self._store.get(self._key(user_id)) == "1"

    def unblock(self, user_id: str) -> None:
        self._store.delete(self._key(user_id))
