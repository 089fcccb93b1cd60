"""Keyed store backends."""

from shareguard.common.config import Config, StoreBackend
from shareguard.store.base import KeyedStore
from shareguard.store.memory import InMemoryKeyedStore


def create_store(config: Config) -> KeyedStore:
    """Build the store backend selected by configuration."""
    if config.store_backend == StoreBackend.REDIS:
        from shareguard.store.redis_store import RedisKeyedStore
        store = RedisKeyedStore(url=config.redis_url)
        store.check_server_version()
        return store
    return InMemoryKeyedStore()


__all__ = ["KeyedStore", "InMemoryKeyedStore", "create_store"]
