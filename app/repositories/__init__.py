"""
Repositories - request log stores backing the rate limiter.
"""

from app.repositories.redis_request_log_repository import RedisRequestLogRepository
from app.repositories.request_log_repository import SQLRequestLogRepository

__all__ = [
    "RedisRequestLogRepository",
    "SQLRequestLogRepository",
]
