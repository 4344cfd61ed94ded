"""
Database integrations: shared Redis client.
"""

from app.integrations.databases.redis import close_async_redis_client, get_async_redis_client

__all__ = [
    "close_async_redis_client",
    "get_async_redis_client",
]
