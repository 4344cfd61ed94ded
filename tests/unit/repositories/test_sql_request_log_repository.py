"""Unit tests for SQLRequestLogRepository with a mocked session."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.interfaces.request_log import RequestLogStoreError
from app.models.db import ApiRequestLog
from app.repositories import SQLRequestLogRepository
from tests.utils import make_mock_session, make_session_factory

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class TestSQLRequestLogRepository:
    """api_request_logs access."""

    @pytest.mark.asyncio
    async def test_append_commits_one_record(self) -> None:
        """Should insert a record with client, path and timestamp."""
        session = make_mock_session()
        store = SQLRequestLogRepository(make_session_factory(session))

        await store.append("203.0.113.7", NOW, "/api/v1/chat")

        record = session.add.call_args.args[0]
        assert isinstance(record, ApiRequestLog)
        assert record.ip_address == "203.0.113.7"
        assert record.path == "/api/v1/chat"
        assert record.created_at == NOW
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_count_since(self) -> None:
        """Should return the counted rows."""
        store = SQLRequestLogRepository(make_session_factory(make_mock_session(scalar=7)))
        assert await store.count_since("203.0.113.7", NOW) == 7

    @pytest.mark.asyncio
    async def test_count_since_none_is_zero(self) -> None:
        """Should treat a missing aggregate as zero."""
        store = SQLRequestLogRepository(make_session_factory(make_mock_session(scalar=None)))
        assert await store.count_since("203.0.113.7", NOW) == 0

    @pytest.mark.asyncio
    async def test_oldest_since(self) -> None:
        """Should return the minimum timestamp."""
        store = SQLRequestLogRepository(make_session_factory(make_mock_session(scalar=NOW)))
        assert await store.oldest_since("203.0.113.7", NOW) == NOW

    @pytest.mark.asyncio
    async def test_database_errors_are_wrapped(self) -> None:
        """Should raise the store error the rate limiter fails open on."""
        session = make_mock_session()
        session.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk full")))
        store = SQLRequestLogRepository(make_session_factory(session))

        with pytest.raises(RequestLogStoreError):
            await store.append("203.0.113.7", NOW)
