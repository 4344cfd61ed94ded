"""
Request Log Repository Implementation

SQLAlchemy implementation of the rate-limit request log, stored in the
api_request_logs table.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.interfaces.request_log import IRequestLogStore, RequestLogStoreError
from app.database.async_db import SessionFactory
from app.models.db.request_log import ApiRequestLog

logger = logging.getLogger(__name__)


class SQLRequestLogRepository(IRequestLogStore):
    """
    Repository for request log operations.

    Each operation opens its own short session so an append is durable
    before the count that follows it is taken.
    """

    def __init__(self, session_factory: SessionFactory):
        """
        Initialize repository.

        Args:
            session_factory: Opens SQLAlchemy async sessions
        """
        self._session_factory = session_factory

    async def append(self, client_id: str, timestamp: datetime, path: Optional[str] = None) -> None:
        try:
            async with self._session_factory() as session:
                session.add(ApiRequestLog(ip_address=client_id, path=path, created_at=timestamp))
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise RequestLogStoreError(f"Failed to append request log: {e}") from e

        logger.debug(f"Request logged for {client_id} at {timestamp.isoformat()}")

    async def count_since(self, client_id: str, since: datetime) -> int:
        query = (
            select(func.count())
            .select_from(ApiRequestLog)
            .where(ApiRequestLog.ip_address == client_id, ApiRequestLog.created_at >= since)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return int(result.scalar() or 0)
        except (SQLAlchemyError, OSError) as e:
            raise RequestLogStoreError(f"Failed to count request logs: {e}") from e

    async def oldest_since(self, client_id: str, since: datetime) -> Optional[datetime]:
        query = select(func.min(ApiRequestLog.created_at)).where(
            ApiRequestLog.ip_address == client_id, ApiRequestLog.created_at >= since
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return result.scalar()
        except (SQLAlchemyError, OSError) as e:
            raise RequestLogStoreError(f"Failed to read oldest request log: {e}") from e
