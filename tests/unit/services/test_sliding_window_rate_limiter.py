"""
Unit tests for SlidingWindowRateLimiter.

The clock is advanced by hand and the request log lives in memory.
"""

import pytest

from app.services.rate_limiter_service import SlidingWindowRateLimiter
from tests.utils import InMemoryRequestLogStore, ManualClock


@pytest.fixture
def limiter(request_log_store: InMemoryRequestLogStore, clock: ManualClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(request_log_store, limit=10, window_seconds=60, clock=clock)


class TestAdmission:
    """Counting within the trailing window."""

    @pytest.mark.asyncio
    async def test_requests_up_to_limit_are_admitted(self, limiter: SlidingWindowRateLimiter) -> None:
        """Should admit the first ten requests."""
        results = [await limiter.admit("203.0.113.7") for _ in range(10)]

        assert all(result.allowed for result in results)
        assert results[-1].current_count == 10

    @pytest.mark.asyncio
    async def test_request_over_limit_is_denied_with_retry_hint(
        self, limiter: SlidingWindowRateLimiter, clock: ManualClock
    ) -> None:
        """Should deny the eleventh request and say when to retry."""
        for _ in range(10):
            await limiter.admit("203.0.113.7")

        clock.advance(59)
        result = await limiter.admit("203.0.113.7")

        assert result.allowed is False
        assert result.current_count == 11
        assert result.retry_after_seconds == 1

    @pytest.mark.asyncio
    async def test_window_slides(self, limiter: SlidingWindowRateLimiter, clock: ManualClock) -> None:
        """Should admit again once old requests leave the window."""
        for _ in range(10):
            await limiter.admit("203.0.113.7")
        clock.advance(59)
        assert (await limiter.admit("203.0.113.7")).allowed is False

        clock.advance(2)
        result = await limiter.admit("203.0.113.7")

        assert result.allowed is True
        assert result.current_count == 2

    @pytest.mark.asyncio
    async def test_denied_requests_are_recorded(
        self, limiter: SlidingWindowRateLimiter, request_log_store: InMemoryRequestLogStore
    ) -> None:
        """Should append every request, admitted or not."""
        for _ in range(12):
            await limiter.admit("203.0.113.7", path="/api/v1/chat")

        assert len(request_log_store.records) == 12
        assert request_log_store.records[0][2] == "/api/v1/chat"

    @pytest.mark.asyncio
    async def test_retry_hint_is_at_least_one_second(
        self, limiter: SlidingWindowRateLimiter, clock: ManualClock
    ) -> None:
        """Should never hint a zero-second wait."""
        for _ in range(10):
            await limiter.admit("203.0.113.7")
        clock.advance(59.9)

        result = await limiter.admit("203.0.113.7")

        assert result.retry_after_seconds == 1

    @pytest.mark.asyncio
    async def test_clients_are_isolated(self, limiter: SlidingWindowRateLimiter) -> None:
        """Should count each client separately."""
        for _ in range(11):
            await limiter.admit("198.51.100.1")

        assert (await limiter.admit("198.51.100.2")).allowed is True


class TestFailOpen:
    """Storage failures admit the request."""

    @pytest.mark.asyncio
    async def test_append_failure_admits(
        self, limiter: SlidingWindowRateLimiter, request_log_store: InMemoryRequestLogStore
    ) -> None:
        """Should admit and flag the result as degraded."""
        request_log_store.fail_append = True

        result = await limiter.admit("203.0.113.7")

        assert result.allowed is True
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_count_failure_admits(
        self, limiter: SlidingWindowRateLimiter, request_log_store: InMemoryRequestLogStore
    ) -> None:
        """Should admit even when the client is over the limit."""
        for _ in range(15):
            await limiter.admit("203.0.113.7")
        request_log_store.fail_count = True

        result = await limiter.admit("203.0.113.7")

        assert result.allowed is True
        assert result.degraded is True


class TestConfiguration:
    """Constructor validation."""

    def test_rejects_non_positive_limit(self, request_log_store: InMemoryRequestLogStore) -> None:
        """Should refuse a zero limit."""
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(request_log_store, limit=0)
