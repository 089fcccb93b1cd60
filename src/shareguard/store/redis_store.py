"""Redis-backed keyed store for multi-process deployments."""

import functools
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Set, TypeVar

import redis
from redis.exceptions import LockError, RedisError

from shareguard.common.exceptions import DependencyUnavailable
from shareguard.store.base import KeyedStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _translate_errors(method: Callable[..., T]) -> Callable[..., T]:
    """Surface driver failures as DependencyUnavailable."""
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except RedisError as e:
            raise DependencyUnavailable(
                f"Redis {method.__name__} failed: {e}", dependency="keyed_store"
            ) from e
    return wrapper


class RedisKeyedStore(KeyedStore):
    """KeyedStore backed by a Redis server.

    Counters and set operations use Redis' native atomic commands; the
    increment-with-TTL pair is sent in a MULTI/EXEC pipeline. Named locks use
    redis-py's Lock so enforcement is serialized across worker processes.

    Requires Redis server 7.0 or later: fixed-window counters set their TTL
    with ``EXPIRE ... NX``, which older servers reject.
    """

    MIN_SERVER_VERSION = (7, 0)

    def __init__(self, url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """Initialize the store.

        Args:
            url: Redis connection URL. Ignored if client is given.
            client: Pre-built redis client (must use decode_responses=True).
        """
        if client is None:
            if not url:
                raise ValueError("Redis URL required when no client is supplied")
            client = redis.Redis.from_url(url, decode_responses=True)
        self._client = client
        logger.info("Initialized RedisKeyedStore")

    @_translate_errors
    def check_server_version(self) -> str:
        """Confirm the server supports the commands this store sends.

        Returns:
            The server's reported version string.

        Raises:
            DependencyUnavailable: Server is older than MIN_SERVER_VERSION or unreachable
        """
        version = str(self._client.info("server")["redis_version"])
        parsed = tuple(int(part) for part in version.split(".")[:2])
        if parsed < self.MIN_SERVER_VERSION:
            required = ".".join(str(p) for p in self.MIN_SERVER_VERSION)
            raise DependencyUnavailable(
                f"Redis server {version} is too old; {required} or later is required",
                dependency="keyed_store",
            )
        return version

    # ----- strings -----

    @_translate_errors
    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._client.set(key, value, ex=ttl)

    @_translate_errors
    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    @_translate_errors
    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._client.delete(*keys))

    @_translate_errors
    def expire(self, key: str, ttl: int) -> bool:
        return bool(self._client.expire(key, ttl))

    @_translate_errors
    def incr(self, key: str, ttl: Optional[int] = None, reset_ttl: bool = True) -> int:
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        if ttl is not None:
            pipe.expire(key, ttl, nx=not reset_ttl)
        results = pipe.execute()
        return int(results[0])

    # ----- sets -----

    @_translate_errors
    def sadd(self, key: str, *members: str) -> int:
        return int(self._client.sadd(key, *members))

    @_translate_errors
    def srem(self, key: str, *members: str) -> int:
        return int(self._client.srem(key, *members))

    @_translate_errors
    def smembers(self, key: str) -> Set[str]:
        return set(self._client.smembers(key))

    @_translate_errors
    def scard(self, key: str) -> int:
        return int(self._client.scard(key))

    @_translate_errors
    def sismember(self, key: str, member: str) -> bool:
        return bool(self._client.sismember(key, member))

    # ----- sorted sets -----

    @_translate_errors
    def zadd(self, key: str, score: float, member: str) -> None:
        self._client.zadd(key, {member: score})

    @_translate_errors
    def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        return list(self._client.zrevrange(key, start, stop))

    @_translate_errors
    def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        return int(self._client.zremrangebyrank(key, start, stop))

    @_translate_errors
    def zcard(self, key: str) -> int:
        return int(self._client.zcard(key))

    # ----- lists -----

    @_translate_errors
    def lpush(self, key: str, *values: str) -> int:
        return int(self._client.lpush(key, *values))

    @_translate_errors
    def ltrim(self, key: str, start: int, stop: int) -> None:
        self._client.ltrim(key, start, stop)

    @_translate_errors
    def lrange(self, key: str, start: int, stop: int) -> List[str]:
        return list(self._client.lrange(key, start, stop))

    # ----- coordination -----

    @contextmanager
    def lock(self, name: str, timeout: float) -> Iterator[None]:
        lock = self._client.lock(name, timeout=timeout, blocking_timeout=timeout)
        try:
            acquired = lock.acquire()
        except RedisError as e:
            raise DependencyUnavailable(
                f"Redis lock {name} failed: {e}", dependency="keyed_store"
            ) from e
        if not acquired:
            raise DependencyUnavailable(
                f"Could not acquire lock {name} within {timeout}s",
                dependency="keyed_store",
            )
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning(f"Lock {name} expired before release")
