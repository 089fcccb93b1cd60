"""Keyed Store - Abstraction over the shared key/value state.

Every counter, cache, index and lock used by the login pipeline is expressed
in the primitives below, so components can run against an in-process store
in tests and against Redis in production.

Design principles:
- Values are strings; callers JSON-encode structured values
- Increment and set-membership operations are atomic
- Range arguments follow Redis conventions (inclusive stop, negative indexes)
"""

from abc import ABC, abstractmethod
from typing import ContextManager, List, Optional, Set


class KeyedStore(ABC):
    """Abstract base class for keyed store backends."""

    # ----- strings -----

    @abstractmethod
    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Set a string value, optionally expiring after ttl seconds."""
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get a string value, or None if missing or expired."""
        pass

    @abstractmethod
    def delete(self, *keys: str) -> int:
        """Delete keys. Returns the number of keys removed."""
        pass

    @abstractmethod
    def expire(self, key: str, ttl: int) -> bool:
        """Set a key's time to live. Returns False if the key does not exist."""
        pass

    @abstractmethod
    def incr(self, key: str, ttl: Optional[int] = None, reset_ttl: bool = True) -> int:
        """Atomically increment an integer counter.

        Args:
            key: Counter key
            ttl: Expiry in seconds to apply to the counter
            reset_ttl: If True the expiry is refreshed on every increment,
                otherwise it is only applied when the counter is created.

        Returns:
            The value after incrementing
        """
        pass

    # ----- sets -----

    @abstractmethod
    def sadd(self, key: str, *members: str) -> int:
        """Add members to a set. Returns the number of new members."""
        pass

    @abstractmethod
    def srem(self, key: str, *members: str) -> int:
        """Remove members from a set. Returns the number removed."""
        pass

    @abstractmethod
    def smembers(self, key: str) -> Set[str]:
        pass

    @abstractmethod
    def scard(self, key: str) -> int:
        pass

    @abstractmethod
    def sismember(self, key: str, member: str) -> bool:
        pass

    # ----- sorted sets -----

    @abstractmethod
    def zadd(self, key: str, score: float, member: str) -> None:
        pass

    @abstractmethod
    def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        """Members ordered by descending score, sliced by rank."""
        pass

    @abstractmethod
    def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        """Remove members by ascending rank. Returns the number removed."""
        pass

    @abstractmethod
    def zcard(self, key: str) -> int:
        pass

    # ----- lists -----

    @abstractmethod
    def lpush(self, key: str, *values: str) -> int:
        """Prepend values. Returns the new list length."""
        pass

    @abstractmethod
    def ltrim(self, key: str, start: int, stop: int) -> None:
        pass

    @abstractmethod
    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        pass

    # ----- coordination -----

    @abstractmethod
    def lock(self, name: str, timeout: float) -> ContextManager:
        """Return a context manager holding an exclusive named lock.

        Raises:
            DependencyUnavailable: If the lock cannot be acquired in time
        """
        pass
