"""Tests for admission control (sliding window rate limiting)."""

import asyncio
from unittest.mock import MagicMock

import pytest

from docgate.auth.rate_limit import RateLimitConfig, RateLimiter, RateWindow
from docgate.core.exceptions import RateLimitedError
from docgate.core.locks import StripedLocks
from docgate.testing.utils import ManualClock


def make_request(host: str = "127.0.0.1", headers: dict | None = None):
    """Create a mock request."""
    request = MagicMock()
    request.client = MagicMock()
    request.client.host = host
    request.headers = headers or {}
    return request


class TestRateLimiter:
    """Tests for RateLimiter."""

    @pytest.fixture
    def clock(self):
        return ManualClock()

    @pytest.fixture
    def rate_limiter(self, clock):
        """Create a limiter with the reference policy: 10 per 60 seconds."""
        return RateLimiter(RateLimitConfig(requests=10, window_seconds=60), clock=clock)

    @pytest.mark.asyncio
    async def test_allows_within_limit(self, rate_limiter):
        """Test that requests within limit are allowed."""
        for _ in range(10):
            await rate_limiter.admit("ip:1.2.3.4")

    @pytest.mark.asyncio
    async def test_rejects_beyond_max(self, rate_limiter):
        """Test that the request after the max-th in a window is rejected."""
        for _ in range(10):
            await rate_limiter.admit("ip:1.2.3.4")

        with pytest.raises(RateLimitedError) as exc_info:
            await rate_limiter.admit("ip:1.2.3.4")

        assert exc_info.value.retry_after == 60

    @pytest.mark.asyncio
    async def test_rejection_is_not_recorded(self, rate_limiter, clock):
        """Rejected requests must not extend the client's lockout."""
        for _ in range(10):
            await rate_limiter.admit("ip:a")
        for _ in range(5):
            with pytest.raises(RateLimitedError):
                await rate_limiter.admit("ip:a")

        assert len(rate_limiter._storage["ip:a"].timestamps) == 10

        clock.advance(seconds=60)
        await rate_limiter.admit("ip:a")

    @pytest.mark.asyncio
    async def test_remaining_count(self, rate_limiter):
        """Test remaining count is correct."""
        info = await rate_limiter.admit("ip:count")
        assert info.remaining == 9
        assert info.limit == 10

        info = await rate_limiter.admit("ip:count")
        assert info.remaining == 8

    @pytest.mark.asyncio
    async def test_window_slides(self, rate_limiter, clock):
        """Old admissions leave the window one by one, not all at once."""
        for _ in range(5):
            await rate_limiter.admit("ip:slide")
        clock.advance(seconds=30)
        for _ in range(5):
            await rate_limiter.admit("ip:slide")

        clock.advance(seconds=29)
        with pytest.raises(RateLimitedError) as exc_info:
            await rate_limiter.admit("ip:slide")
        assert exc_info.value.retry_after == 1

        # The first five have now aged out, the last five have not
        clock.advance(seconds=1)
        for _ in range(5):
            await rate_limiter.admit("ip:slide")
        with pytest.raises(RateLimitedError):
            await rate_limiter.admit("ip:slide")

    @pytest.mark.asyncio
    async def test_different_ips_separate_limits(self, rate_limiter):
        """Test that different IPs have separate rate limits."""
        request1 = make_request("192.168.1.1")
        request2 = make_request("192.168.1.2")

        for _ in range(10):
            await rate_limiter.check_rate_limit(request1)

        with pytest.raises(RateLimitedError):
            await rate_limiter.check_rate_limit(request1)

        info = await rate_limiter.check_rate_limit(request2)
        assert info.remaining == 9

    @pytest.mark.asyncio
    async def test_burst_admits_exactly_max(self, clock):
        """A burst of 25 gathered requests from one client admits exactly 10."""
        rate_limiter = RateLimiter(
            RateLimitConfig(requests=10, window_seconds=60),
            clock=clock,
            locks=StripedLocks(stripes=4),
        )

        results = await asyncio.gather(
            *[rate_limiter.admit("ip:burst") for _ in range(25)],
            return_exceptions=True,
        )

        admitted = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, RateLimitedError)]
        assert len(admitted) == 10
        assert len(rejected) == 15

    @pytest.mark.asyncio
    async def test_admit_waits_for_the_key_lock(self, clock):
        """Admission only touches a window while holding that key's lock."""
        locks = StripedLocks(stripes=1)
        rate_limiter = RateLimiter(RateLimitConfig(requests=10), clock=clock, locks=locks)

        async with locks.hold("ip:held"):
            pending = asyncio.create_task(rate_limiter.admit("ip:held"))
            for _ in range(5):
                await asyncio.sleep(0)
            assert not pending.done()
            assert "ip:held" not in rate_limiter._storage

        info = await pending
        assert info.remaining == 9
        assert len(rate_limiter._storage["ip:held"].timestamps) == 1

    @pytest.mark.asyncio
    async def test_cleanup_drops_idle_windows(self, clock):
        """Windows with no live timestamps are purged periodically."""
        rate_limiter = RateLimiter(
            RateLimitConfig(requests=2, window_seconds=10),
            clock=clock,
            cleanup_interval=100,
        )
        await rate_limiter.admit("ip:idle")
        clock.advance(seconds=101)

        await rate_limiter.admit("ip:active")

        assert "ip:idle" not in rate_limiter._storage
        assert "ip:active" in rate_limiter._storage

    def test_forwarded_for_ignored_by_default(self, rate_limiter):
        """X-Forwarded-For from an untrusted peer must not change the key."""
        request = make_request("10.0.0.1", headers={"X-Forwarded-For": "6.6.6.6"})
        assert rate_limiter.client_key(request) == "ip:10.0.0.1"

    def test_forwarded_for_from_trusted_proxy(self, clock):
        rate_limiter = RateLimiter(clock=clock, trusted_proxies=["10.0.0.1"])
        request = make_request("10.0.0.1", headers={"X-Forwarded-For": "8.8.8.8, 10.0.0.1"})
        assert rate_limiter.client_key(request) == "ip:8.8.8.8"

    @pytest.mark.asyncio
    async def test_reset_limit(self, rate_limiter):
        """Test resetting rate limit for a key."""
        await rate_limiter.admit("ip:127.0.0.1")

        rate_limiter.reset("ip:127.0.0.1")

        assert "ip:127.0.0.1" not in rate_limiter._storage

    @pytest.mark.asyncio
    async def test_reset_all(self, rate_limiter):
        """Test resetting all rate limits."""
        await rate_limiter.admit("key1")
        await rate_limiter.admit("key2")

        rate_limiter.reset_all()

        assert len(rate_limiter._storage) == 0


class TestRateWindow:
    def test_expire_drops_only_old_entries(self):
        window = RateWindow()
        window.timestamps.extend([0.0, 10.0, 59.0])

        window.expire(now=60.0, window_seconds=60.0)

        assert list(window.timestamps) == [10.0, 59.0]


class TestStripedLocks:
    def test_same_key_same_lock(self):
        locks = StripedLocks(stripes=8)
        assert locks.lock_for("ip:a") is locks.lock_for("ip:a")
        assert len(locks) == 8

    def test_invalid_stripes(self):
        with pytest.raises(ValueError):
            StripedLocks(stripes=0)


class TestRateLimitConfig:
    """Tests for RateLimitConfig."""

    def test_reference_policy_defaults(self):
        config = RateLimitConfig()
        assert config.requests == 10
        assert config.window_seconds == 60.0
