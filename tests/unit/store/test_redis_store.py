"""Unit tests for the Redis keyed store (client mocked)."""

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from shareguard.common.exceptions import DependencyUnavailable
from shareguard.store.redis_store import RedisKeyedStore


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def redis_store(client):
    return RedisKeyedStore(client=client)


class TestRedisKeyedStore:
    """Tests for command translation and error handling."""

    def test_requires_url_or_client(self):
        with pytest.raises(ValueError):
            RedisKeyedStore()

    def test_set_passes_ttl(self, redis_store, client):
        redis_store.set("k", "v", ttl=30)
        client.set.assert_called_once_with("k", "v", ex=30)

    def test_incr_uses_pipeline(self, redis_store, client):
        pipe = client.pipeline.return_value
        pipe.execute.return_value = [3, True]

        assert redis_store.incr("c", ttl=60, reset_ttl=False) == 3
        pipe.incr.assert_called_once_with("c")
        pipe.expire.assert_called_once_with("c", 60, nx=True)

    def test_incr_with_reset_ttl_omits_nx(self, redis_store, client):
        pipe = client.pipeline.return_value
        pipe.execute.return_value = [1, True]

        redis_store.incr("c", ttl=60)
        pipe.expire.assert_called_once_with("c", 60, nx=False)

    @pytest.mark.parametrize("version", ["7.0.0", "7.2.4", "8.0.1"])
    def test_supported_server_version(self, redis_store, client, version):
        client.info.return_value = {"redis_version": version}

        assert redis_store.check_server_version() == version
        client.info.assert_called_once_with("server")

    @pytest.mark.parametrize("version", ["6.2.14", "5.0.7"])
    def test_old_server_version_rejected(self, redis_store, client, version):
        client.info.return_value = {"redis_version": version}

        with pytest.raises(DependencyUnavailable) as exc_info:
            redis_store.check_server_version()
        assert "7.0 or later" in str(exc_info.value)

    def test_driver_errors_become_dependency_unavailable(self, redis_store, client):
        client.get.side_effect = RedisConnectionError("down")

        with pytest.raises(DependencyUnavailable) as exc_info:
            redis_store.get("k")
        assert exc_info.value.details["dependency"] == "keyed_store"

    def test_lock_not_acquired(self, redis_store, client):
        client.lock.return_value.acquire.return_value = False

        with pytest.raises(DependencyUnavailable):
            with redis_store.lock("lock:sessions:u1", timeout=1):
                pass

    def test_lock_released_after_block(self, redis_store, client):
        lock = client.lock.return_value
        lock.acquire.return_value = True

        with redis_store.lock("lock:sessions:u1", timeout=1):
            pass
        lock.release.assert_called_once()
