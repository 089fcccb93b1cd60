"""Unit tests for SessionRegistry."""

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from shareguard.common.exceptions import DependencyUnavailable
from shareguard.data.schemas import Plan
from shareguard.sessions import SessionRegistry, max_sessions_for

USER = "usr_sessions"


@pytest.fixture
def registry(store, clock):
    return SessionRegistry(store, clock=clock)


class TestPlanLimits:

    @pytest.mark.parametrize("plan,limit", [
        (Plan.BASIC, 1),
        (Plan.STANDARD, 2),
        (Plan.PREMIUM, 4),
        ("premium", 4),
        ("GOLD", 1),
        (None, 1),
    ])
    def test_max_sessions_for(self, plan, limit):
        assert max_sessions_for(plan) == limit


class TestSessionLifecycle:

    def test_create_and_get(self, registry, clock):
        session = registry.create(USER, "d1", "tok-1", {
            "ip_address": "203.0.113.10",
            "trust_score": 72,
            "location": {"country": "IN", "city": "Delhi", "latitude": 28.7, "longitude": 77.1},
        })

        stored = registry.get(USER, "d1")
        assert stored == session
        assert stored.location.country == "IN"
        assert stored.created_at == stored.last_activity == clock.datetime()

    def test_get_missing(self, registry):
        assert registry.get(USER, "nope") is None

    def test_validate(self, registry):
        registry.create(USER, "d1", "tok-1")

        assert registry.validate(USER, "d1", "tok-1")
        assert not registry.validate(USER, "d1", "tok-2")
        assert not registry.validate(USER, "d2", "tok-1")

    def test_sessions_expire_after_a_day(self, registry, clock):
        registry.create(USER, "d1", "tok-1")
        clock.advance(86400 + 1)

        assert registry.get(USER, "d1") is None
        assert registry.list_active(USER) == []

    def test_list_active_is_oldest_first(self, registry, clock):
        for device in ("d3", "d1", "d2"):
            registry.create(USER, device, f"tok-{device}")
            clock.advance(10)

        assert [s.device_id for s in registry.list_active(USER)] == ["d3", "d1", "d2"]

    def test_list_active_prunes_dead_index_entries(self, registry, store):
        registry.create(USER, "d1", "tok-1")
        registry.create(USER, "d2", "tok-2")
        store.delete(f"session:{USER}:d1")

        assert [s.device_id for s in registry.list_active(USER)] == ["d2"]
        assert store.smembers(f"user:{USER}:sessions") == {"d2"}

    def test_delete(self, registry):
        registry.create(USER, "d1", "tok-1")

        assert registry.delete(USER, "d1") is True
        assert registry.delete(USER, "d1") is False
        assert registry.get(USER, "d1") is None

    def test_delete_all(self, registry):
        for device in ("d1", "d2", "d3"):
            registry.create(USER, device, f"tok-{device}")
        registry.create("usr_other", "d1", "tok-x")

        assert registry.delete_all(USER) == 3
        assert registry.list_active(USER) == []
        assert registry.get("usr_other", "d1") is not None


class TestTouchActivity:

    def test_refreshes_last_activity_only(self, registry, clock):
        created = registry.create(USER, "d1", "tok-1")
        clock.advance(120)

        touched = registry.touch_activity(USER, "d1")

        assert touched.last_activity == clock.datetime()
        assert touched.created_at == created.created_at
        assert touched.token == "tok-1"

    def test_never_moves_backwards(self, registry, clock):
        registry.create(USER, "d1", "tok-1")
        clock.advance(60)
        first = registry.touch_activity(USER, "d1")
        clock.advance(-30)

        second = registry.touch_activity(USER, "d1")

        assert second.last_activity == first.last_activity

    def test_extends_ttl(self, registry, clock):
        registry.create(USER, "d1", "tok-1")
        clock.advance(86000)
        registry.touch_activity(USER, "d1")
        clock.advance(1000)

        assert registry.get(USER, "d1") is not None

    def test_touched_session_stays_indexed(self, registry, clock):
        registry.create(USER, "d1", "tok-1")
        clock.advance(23 * 3600)
        registry.touch_activity(USER, "d1")
        clock.advance(2 * 3600)

        assert [s.device_id for s in registry.list_active(USER)] == ["d1"]

        _, evicted = registry.enforce_and_create(USER, "d2", "tok-2", None, max_sessions=1)

        assert [s.device_id for s in evicted] == ["d1"]
        assert [s.device_id for s in registry.list_active(USER)] == ["d2"]
        assert registry.get(USER, "d1") is None

    def test_missing_session(self, registry):
        assert registry.touch_activity(USER, "d1") is None


class TestEnforceAndCreate:
    """Tests for plan-limit eviction."""

    def test_under_limit_keeps_everything(self, registry, clock):
        registry.enforce_and_create(USER, "d1", "tok-1", None, max_sessions=2)
        clock.advance(10)
        _, evicted = registry.enforce_and_create(USER, "d2", "tok-2", None, max_sessions=2)

        assert evicted == []
        assert len(registry.list_active(USER)) == 2

    def test_evicts_oldest_first(self, registry, clock):
        for device in ("d1", "d2"):
            registry.enforce_and_create(USER, device, f"tok-{device}", None, max_sessions=2)
            clock.advance(10)

        session, evicted = registry.enforce_and_create(USER, "d3", "tok-d3", None, max_sessions=2)

        assert [s.device_id for s in evicted] == ["d1"]
        assert session.device_id == "d3"
        assert [s.device_id for s in registry.list_active(USER)] == ["d2", "d3"]

    def test_basic_plan_replaces_other_device(self, registry, clock):
        registry.enforce_and_create(USER, "d1", "tok-1", None, max_sessions=1)
        clock.advance(10)

        _, evicted = registry.enforce_and_create(USER, "d2", "tok-2", None, max_sessions=1)

        assert [s.device_id for s in evicted] == ["d1"]
        assert [s.device_id for s in registry.list_active(USER)] == ["d2"]

    def test_same_device_replaces_in_place(self, registry, clock):
        registry.enforce_and_create(USER, "d1", "tok-1", None, max_sessions=1)
        clock.advance(10)

        session, evicted = registry.enforce_and_create(USER, "d1", "tok-2", None, max_sessions=1)

        assert evicted == []
        assert session.token == "tok-2"
        assert not registry.validate(USER, "d1", "tok-1")
        assert len(registry.list_active(USER)) == 1

    def test_never_exceeds_limit_from_overfull_state(self, registry, clock):
        for device in ("d1", "d2", "d3", "d4"):
            registry.create(USER, device, f"tok-{device}")
            clock.advance(10)

        _, evicted = registry.enforce_and_create(USER, "d5", "tok-5", None, max_sessions=2)

        assert [s.device_id for s in evicted] == ["d1", "d2", "d3"]
        assert [s.device_id for s in registry.list_active(USER)] == ["d4", "d5"]

    def test_lock_failure_propagates(self, registry, store):
        with patch.object(
            store, "lock", side_effect=DependencyUnavailable("lock busy", dependency="redis"),
        ):
            with pytest.raises(DependencyUnavailable):
                registry.enforce_and_create(USER, "d1", "tok-1", None, max_sessions=1)

        assert registry.get(USER, "d1") is None

    def test_concurrent_logins_respect_limit(self, registry):
        workers = 8
        barrier = threading.Barrier(workers)

        def login(i):
            barrier.wait(timeout=5)
            return registry.enforce_and_create(USER, f"d{i}", f"tok-{i}", None, max_sessions=1)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(login, range(workers)))

        survivors = registry.list_active(USER)
        assert len(survivors) == 1
        assert sum(len(evicted) for _, evicted in results) == workers - 1
        assert survivors[0].device_id in {session.device_id for session, _ in results}
