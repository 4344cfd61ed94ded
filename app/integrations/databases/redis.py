"""
Redis Integration

Shared async Redis client for the redis-backed request log.
"""

import logging

import redis.asyncio as aioredis

from app.config.settings import get_settings

logger = logging.getLogger(__name__)

_async_redis_client: aioredis.Redis | None = None


def get_async_redis_client() -> aioredis.Redis:
    """
    Get the async Redis client (singleton).

    The connection is opened lazily on the first command, so a Redis outage
    surfaces as a command error that callers may treat as they see fit.
    """
    global _async_redis_client

    if _async_redis_client is None:
        settings = get_settings()
        _async_redis_client = aioredis.Redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            password=settings.REDIS_PASSWORD,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        logger.info(f"Async Redis client created: {settings.REDIS_HOST}:{settings.REDIS_PORT}")

    return _async_redis_client


async def close_async_redis_client() -> None:
    """Close the shared client (application shutdown)."""
    global _async_redis_client

    if _async_redis_client is not None:
        await _async_redis_client.aclose()
        logger.info("Async Redis client closed")
    _async_redis_client = None
