"""Unit tests for rate limiting and suspensions."""

import pytest

from shareguard.auth import RateLimiter, Suspensions
from shareguard.common.exceptions import RateLimited


@pytest.fixture
def limiter(store):
    return RateLimiter(store, "login", limit=5, window_seconds=900)


class TestRateLimiter:

    def test_allows_up_to_limit(self, limiter):
        assert [limiter.hit("203.0.113.10") for _ in range(5)] == [1, 2, 3, 4, 5]

    def test_rejects_over_limit(self, limiter):
        for _ in range(5):
            limiter.hit("203.0.113.10")

        with pytest.raises(RateLimited) as exc_info:
            limiter.hit("203.0.113.10")

        assert exc_info.value.retry_after == 900
        assert exc_info.value.message == "Too many login attempts. Please try again later."
        assert exc_info.value.status_code == 429

    def test_identities_are_independent(self, limiter):
        for _ in range(5):
            limiter.hit("203.0.113.10")
        assert limiter.hit("203.0.113.11") == 1

    def test_window_is_fixed_from_first_hit(self, limiter, clock):
        limiter.hit("ip")
        clock.advance(800)
        for _ in range(4):
            limiter.hit("ip")
        clock.advance(101)

        assert limiter.hit("ip") == 1

    def test_reset(self, limiter):
        for _ in range(5):
            limiter.hit("ip")
        limiter.reset("ip")
        assert limiter.hit("ip") == 1

    def test_message_uses_readable_prefix(self, store):
        limiter = RateLimiter(store, "otp_verify", limit=0, window_seconds=60)
        with pytest.raises(RateLimited, match="Too many otp verify attempts"):
            limiter.hit("viewer@example.com")


class TestSuspensions:

    def test_block_expires(self, store, clock):
        suspensions = Suspensions(store, default_seconds=3600)
        suspensions.block("usr_1")

        assert suspensions.is_blocked("usr_1")
        assert not suspensions.is_blocked("usr_2")
        clock.advance(3600)
        assert not suspensions.is_blocked("usr_1")

    def test_custom_duration_and_unblock(self, store, clock):
        suspensions = Suspensions(store)
        suspensions.block("usr_1", 60)
        clock.advance(59)
        assert suspensions.is_blocked("usr_1")

        suspensions.unblock("usr_1")
        assert not suspensions.is_blocked("usr_1")
