"""
Services Module

- SlidingWindowRateLimiter: per-client admission control
"""

from app.services.rate_limiter_service import RateLimitResult, SlidingWindowRateLimiter, build_rate_limiter

__all__ = [
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "build_rate_limiter",
]
