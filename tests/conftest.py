"""
Shared pytest fixtures for all tests.

Unit tests never touch a real database, Redis or language model: the
collaborators below are in-memory fakes or mocks.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure test environment before settings are first read
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("LLM_API_KEY", "sk-test")
os.environ.setdefault("RATE_LIMIT_BACKEND", "database")

from app.core.tools.sql_agent import SQLAgentToolbox, SQLExecutor, SQLValidator, SchemaInspector  # noqa: E402
from app.core.tools.sql_agent.models import ColumnDescriptor, ExecutionOutcome, SchemaOverviewRow  # noqa: E402
from tests.utils import InMemoryRequestLogStore, ManualClock  # noqa: E402


# ============================================================================
# RATE LIMITER FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Manually advanced UTC clock."""
    return ManualClock()


@pytest.fixture
def request_log_store() -> InMemoryRequestLogStore:
    """Empty in-memory request log."""
    return InMemoryRequestLogStore()


# ============================================================================
# TOOL FIXTURES
# ============================================================================


@pytest.fixture
def validator() -> SQLValidator:
    return SQLValidator()


@pytest.fixture
def mock_inspector():
    """Schema inspector returning a two-table catalog."""
    mock = MagicMock(spec=SchemaInspector)
    mock.schema = "public"
    mock.list_tables = AsyncMock(return_value=["api_request_logs", "artist"])
    mock.read_overview = AsyncMock(
        return_value=[
            SchemaOverviewRow(
                table_name="api_request_logs",
                columns_with_types_and_fks="id bigint, ip_address text, path text, created_at timestamptz",
            ),
            SchemaOverviewRow(table_name="artist", columns_with_types_and_fks="artist_id integer, name text"),
        ]
    )
    mock.get_columns = AsyncMock(
        return_value=[
            ColumnDescriptor(table_name="artist", column_name="artist_id", data_type="integer", is_nullable=False),
            ColumnDescriptor(table_name="artist", column_name="name", data_type="text", is_nullable=True),
        ]
    )
    mock.get_all_columns = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_executor():
    """Executor returning two artist rows."""
    mock = MagicMock(spec=SQLExecutor)
    mock.execute = AsyncMock(
        return_value=ExecutionOutcome(rows=[{"artist_id": 1, "name": "AC/DC"}, {"artist_id": 2, "name": "Accept"}])
    )
    return mock


@pytest.fixture
def toolbox(mock_inspector, mock_executor, validator) -> SQLAgentToolbox:
    """Real toolbox over mocked catalog reader and executor."""
    return SQLAgentToolbox(mock_inspector, mock_executor, validator)
