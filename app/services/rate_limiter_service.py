"""
Rate Limiter Service

Per-client sliding-window admission control backed by a durable request log.

Policy:
- every request is appended to the log, including requests that are denied
- records with timestamp >= now - window are counted
- the request is denied when that count exceeds the limit
- storage failures admit the request (fail open)
"""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Callable, Optional

from app.config.settings import Settings, get_settings
from app.core.interfaces.request_log import IRequestLogStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    current_count: int = 0
    limit: int = 0
    retry_after_seconds: int | None = None
    degraded: bool = False


class SlidingWindowRateLimiter:
    """
    Sliding-window rate limiter over an append-only request log.

    Usage:
        limiter = SlidingWindowRateLimiter(SQLRequestLogRepository(get_session_factory()))
        result = await limiter.admit(client_ip, path="/api/v1/chat")
        if not result.allowed:
            raise AdmissionDeniedError(result.retry_after_seconds)
    """

    def __init__(
        self,
        store: IRequestLogStore,
        limit: int = 10,
        window_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize rate limiter.

        Args:
            store: Durable request log
            limit: Requests allowed per client within the window
            window_seconds: Length of the trailing window
            clock: Source of timezone-aware "now"
        """
        if limit < 1 or window_seconds < 1:
            raise ValueError("limit and window_seconds must be positive")

        self._store = store
        self._limit = limit
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return int(self._window.total_seconds())

    async def admit(self, client_id: str, path: Optional[str] = None) -> RateLimitResult:
        """
        Record the request and decide whether it is admitted.

        Args:
            client_id: Client identifier (usually the client IP)
            path: Request path stored alongside the record

        Returns:
            RateLimitResult; denied results carry a retry-after hint in seconds
        """
        now = self._clock()
        window_start = now - self._window

        try:
            await self._store.append(client_id, now, path)
        except Exception as e:
            # Fail open: the log is an auxiliary store, not a dependency of answering
            logger.warning(f"Rate limit log append failed for {client_id}, admitting request: {e}")
            return RateLimitResult(allowed=True, limit=self._limit, degraded=True)

        try:
            current_count = await self._store.count_since(client_id, window_start)
        except Exception as e:
            logger.warning(f"Rate limit count failed for {client_id}, admitting request: {e}")
            return RateLimitResult(allowed=True, limit=self._limit, degraded=True)

        if current_count <= self._limit:
            return RateLimitResult(allowed=True, current_count=current_count, limit=self._limit)

        retry_after = await self._retry_after(client_id, window_start, now)
        logger.info(f"Rate limit exceeded for {client_id}: {current_count}/{self._limit}, retry in {retry_after}s")
        return RateLimitResult(
            allowed=False,
            current_count=current_count,
            limit=self._limit,
            retry_after_seconds=retry_after,
        )

    async def _retry_after(self, client_id: str, window_start: datetime, now: datetime) -> int:
        """Seconds until the oldest record in the window ages out (at least 1)."""
        try:
            oldest = await self._store.oldest_since(client_id, window_start)
        except Exception as e:
            logger.warning(f"Could not read oldest request for {client_id}: {e}")
            oldest = None

        if oldest is None:
            return self.window_seconds

        seconds = (oldest + self._window - now).total_seconds()
        return max(1, math.ceil(seconds))


def build_rate_limiter(store: IRequestLogStore, settings: Settings | None = None) -> SlidingWindowRateLimiter:
    """Create a limiter with the configured limit and window."""
    settings = settings or get_settings()
    return SlidingWindowRateLimiter(
        store,
        limit=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


__all__ = [
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "build_rate_limiter",
    "utc_now",
]
