"""
Redis Request Log Repository

Request log kept in one sorted set per client, scored by UNIX timestamp.
Keys expire after the window so idle clients leave nothing behind.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.interfaces.request_log import IRequestLogStore, RequestLogStoreError

logger = logging.getLogger(__name__)


class RedisRequestLogRepository(IRequestLogStore):
    """
    Redis-backed request log.

    Usage:
        store = RedisRequestLogRepository(get_async_redis_client(), window_seconds=60)
        await store.append("203.0.113.7", datetime.now(UTC))
    """

    KEY_PREFIX = "sql_agent:requests"

    def __init__(self, redis: aioredis.Redis, window_seconds: int = 60):
        self._redis = redis
        self._window_seconds = window_seconds

    def _build_key(self, client_id: str) -> str:
        return f"{self.KEY_PREFIX}:{client_id}"

    async def append(self, client_id: str, timestamp: datetime, path: Optional[str] = None) -> None:
        key = self._build_key(client_id)
        # Unique member so requests sharing a timestamp are all counted
        member = f"{timestamp.timestamp():.6f}:{uuid.uuid4().hex}"
        try:
            await self._redis.zadd(key, {member: timestamp.timestamp()})
            await self._redis.expire(key, self._window_seconds * 2)
        except RedisError as e:
            raise RequestLogStoreError(f"Failed to append request log: {e}") from e

    async def count_since(self, client_id: str, since: datetime) -> int:
        try:
            return int(await self._redis.zcount(self._build_key(client_id), since.timestamp(), "+inf"))
        except RedisError as e:
            raise RequestLogStoreError(f"Failed to count request logs: {e}") from e

    async def oldest_since(self, client_id: str, since: datetime) -> Optional[datetime]:
        try:
            entries = await self._redis.zrangebyscore(
                self._build_key(client_id), since.timestamp(), "+inf", start=0, num=1, withscores=True
            )
        except RedisError as e:
            raise RequestLogStoreError(f"Failed to read oldest request log: {e}") from e

        if not entries:
            return None
        _, score = entries[0]
        return datetime.fromtimestamp(score, UTC)
