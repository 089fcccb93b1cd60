"""Rate limiting - fixed windows over keyed-store counters."""

import logging

from shareguard.common.exceptions import RateLimited
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)


class RateLimiter:
    """Allows at most `limit` hits per key within a fixed window.

    The window starts at the first hit; later hits do not extend it.
    """

    def __init__(self, store: KeyedStore, prefix: str, limit: int, window_seconds: int):
        self._store = store
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds

    def _key(self, identity: str) -> str:
        return f"rl:{self.prefix}:{identity}"

    def hit(self, identity: str) -> int:
        """Count a hit.

        Returns:
            Hits so far in the current window

        Raises:
            RateLimited: If the hit exceeds the limit
        """
        hits = self._store.incr(self._key(identity), ttl=self.window_seconds, reset_ttl=False)
        if hits > self.limit:
            logger.warning(
                "Rate limit exceeded",
                extra={"limiter": self.prefix, "identity": identity, "hits": hits},
            )
            raise RateLimited(
                f"Too many {self.prefix.replace('_', ' ')} attempts. Please try again later.",
                retry_after=self.window_seconds,
            )
        return hits

    def reset(self, identity: str) -> None:
        self._store.delete(self._key(identity))
