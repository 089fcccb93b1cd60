"""In-process keyed store with lazy TTL expiry."""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set

from shareguard.common.exceptions import DependencyUnavailable
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)


def _rank_slice(items: Sequence[Any], start: int, stop: int) -> List[Any]:
    """Slice with Redis range semantics (inclusive stop, negative indexes)."""
    n = len(items)
    if start < 0:
        start = max(n + start, 0)
    if stop < 0:
        stop = n + stop
    if start >= n or start > stop:
        return []
    return list(items[start:stop + 1])


class _NamedLock:
    """A lock plus the number of threads holding or waiting on it."""

    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class InMemoryKeyedStore(KeyedStore):
    """Thread-safe in-memory implementation of KeyedStore.

    Expired keys are dropped when they are next touched. A single RLock
    serializes all operations, which makes increments and set additions
    atomic with respect to concurrent requests in the same process.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """Initialize the store.

        Args:
            clock: Returns the current epoch time in seconds. Defaults to time.time.
        """
        self._clock = clock or time.time
        self._data: Dict[str, Any] = {}
        self._expiry: Dict[str, float] = {}
        self._lock = threading.RLock()
        self._named_locks: Dict[str, _NamedLock] = {}

    def _alive(self, key: str) -> bool:
        deadline = self._expiry.get(key)
        if deadline is not None and deadline <= self._clock():
            self._data.pop(key, None)
            self._expiry.pop(key, None)
            return False
        return key in self._data

    def _container(self, key: str, factory: Callable[[], Any]) -> Any:
        if not self._alive(key):
            self._data[key] = factory()
        return self._data[key]

    def _set_ttl(self, key: str, ttl: Optional[int]) -> None:
        if ttl is None:
            self._expiry.pop(key, None)
        else:
            self._expiry[key] = self._clock() + ttl

    # ----- strings -----

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = str(value)
            self._set_ttl(key, ttl)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            if not self._alive(key):
                return None
            value = self._data[key]
            return value if isinstance(value, str) else None

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._alive(key):
                    removed += 1
                self._data.pop(key, None)
                self._expiry.pop(key, None)
        return removed

    def expire(self, key: str, ttl: int) -> bool:
        with self._lock:
            if not self._alive(key):
                return False
            self._set_ttl(key, ttl)
            return True

    def incr(self, key: str, ttl: Optional[int] = None, reset_ttl: bool = True) -> int:
        with self._lock:
            created = not self._alive(key)
            current = 0 if created else int(self._data[key])
            current += 1
            self._data[key] = str(current)
            if ttl is not None and (created or reset_ttl):
                self._set_ttl(key, ttl)
            return current

    # ----- sets -----

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            bucket: Set[str] = self._container(key, set)
            before = len(bucket)
            bucket.update(str(m) for m in members)
            return len(bucket) - before

    def srem(self, key: str, *members: str) -> int:
        with self._lock:
            if not self._alive(key):
                return 0
            bucket: Set[str] = self._data[key]
            removed = 0
            for member in members:
                if member in bucket:
                    bucket.discard(member)
                    removed += 1
            return removed

    def smembers(self, key: str) -> Set[str]:
        with self._lock:
            if not self._alive(key):
                return set()
            return set(self._data[key])

    def scard(self, key: str) -> int:
        return len(self.smembers(key))

    def sismember(self, key: str, member: str) -> bool:
        return str(member) in self.smembers(key)

    # ----- sorted sets -----

    def _ranked(self, key: str) -> List[str]:
        scores: Dict[str, float] = self._data[key]
        return [m for m, _ in sorted(scores.items(), key=lambda item: (item[1], item[0]))]

    def zadd(self, key: str, score: float, member: str) -> None:
        with self._lock:
            scores: Dict[str, float] = self._container(key, dict)
            scores[member] = float(score)

    def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        with self._lock:
            if not self._alive(key):
                return []
            return _rank_slice(list(reversed(self._ranked(key))), start, stop)

    def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        with self._lock:
            if not self._alive(key):
                return 0
            doomed = _rank_slice(self._ranked(key), start, stop)
            scores: Dict[str, float] = self._data[key]
            for member in doomed:
                del scores[member]
            return len(doomed)

    def zcard(self, key: str) -> int:
        with self._lock:
            if not self._alive(key):
                return 0
            return len(self._data[key])

    # ----- lists -----

    def lpush(self, key: str, *values: str) -> int:
        with self._lock:
            items: List[str] = self._container(key, list)
            for value in values:
                items.insert(0, str(value))
            return len(items)

    def ltrim(self, key: str, start: int, stop: int) -> None:
        with self._lock:
            if self._alive(key):
                self._data[key] = _rank_slice(self._data[key], start, stop)

    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        with self._lock:
            if not self._alive(key):
                return []
            return _rank_slice(self._data[key], start, stop)

    # ----- coordination -----

    @contextmanager
    def lock(self, name: str, timeout: float) -> Iterator[None]:
        """Named mutex. Entries are dropped once no thread holds or waits on them."""
        with self._lock:
            named = self._named_locks.get(name)
            if named is None:
                named = self._named_locks[name] = _NamedLock()
            named.users += 1
        try:
            if not named.lock.acquire(timeout=timeout):
                raise DependencyUnavailable(
                    f"Could not acquire lock {name} within {timeout}s",
                    dependency="keyed_store",
                )
            try:
                yield
            finally:
                named.lock.release()
        finally:
            with self._lock:
                named.users -= 1
                if named.users == 0:
                    self._named_locks.pop(name, None)
