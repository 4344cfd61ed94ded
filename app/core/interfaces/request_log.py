"""
Interface for the rate-limit request log.

Append-only: records are written once per inbound request and read back by
count within a trailing window. Retention is handled outside this service.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class IRequestLogStore(Protocol):
    """Durable per-client request log backing the sliding-window limiter."""

    @abstractmethod
    async def append(self, client_id: str, timestamp: datetime, path: Optional[str] = None) -> None:
        """Record one request for a client."""
        ...

    @abstractmethod
    async def count_since(self, client_id: str, since: datetime) -> int:
        """Number of records for a client with timestamp >= since."""
        ...

    @abstractmethod
    async def oldest_since(self, client_id: str, since: datetime) -> Optional[datetime]:
        """Timestamp of the oldest record for a client with timestamp >= since."""
        ...


class RequestLogStoreError(Exception):
    """The request log backend failed to read or write."""

    pass
