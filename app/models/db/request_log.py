"""
API request log model.

One row per inbound chat request, appended by the rate limiter and counted
within a trailing window. Rows are never updated; pruning old rows is an
operational task outside this service.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Column, DateTime, Index, String

from .base import Base


class ApiRequestLog(Base):
    """
    Append-only request log backing the sliding-window rate limiter.

    Attributes:
        id: Surrogate key
        ip_address: Client identifier (first forwarded hop or peer address)
        path: Request path that was admitted or denied
        created_at: Request timestamp (timezone-aware UTC)
    """

    __tablename__ = "api_request_logs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    ip_address = Column(String(255), nullable=False, comment="Client identifier")
    path = Column(String(255), nullable=True, comment="Request path")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (Index("idx_api_request_logs_ip_created_at", "ip_address", "created_at"),)

    def __repr__(self) -> str:
        return f"<ApiRequestLog(ip_address='{self.ip_address}', created_at='{self.created_at}')>"
