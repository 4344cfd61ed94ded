"""Unit tests for SQLAgentToolbox dispatch."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import DBAPIError, ProgrammingError

from app.core.exceptions import DatabaseUnavailableError, UnknownToolError
from app.core.tools.sql_agent import TOOL_DEFINITIONS, SQLAgentToolbox, ToolName
from app.core.tools.sql_agent.models import ExecutionOutcome
from tests.utils import create_tool_call


class TestRegistry:
    """The tool set is closed."""

    def test_every_tool_has_a_definition(self) -> None:
        """Should offer exactly the enumerated tools to the model."""
        names = [definition["function"]["name"] for definition in TOOL_DEFINITIONS]
        assert sorted(names) == sorted(tool.value for tool in ToolName)

    def test_is_known(self, toolbox: SQLAgentToolbox) -> None:
        """Should recognise registry names only."""
        assert toolbox.is_known("execute_sql") is True
        assert toolbox.is_known("drop_database") is False

    def test_resolve_unknown_tool_raises(self, toolbox: SQLAgentToolbox) -> None:
        """Should reject names outside the registry."""
        with pytest.raises(UnknownToolError):
            toolbox.resolve("drop_database")

    @pytest.mark.asyncio
    async def test_dispatch_unknown_tool_raises(self, toolbox: SQLAgentToolbox) -> None:
        """Should refuse to dispatch an unknown tool."""
        with pytest.raises(UnknownToolError):
            await toolbox.dispatch(create_tool_call(name="shell", pending=True))


class TestCatalogTools:
    """Schema discovery tools."""

    @pytest.mark.asyncio
    async def test_list_tables(self, toolbox: SQLAgentToolbox) -> None:
        """Should return the table names."""
        call = await toolbox.dispatch(create_tool_call(name="list_tables", pending=True))
        assert call.status == "result"
        assert call.result == ["api_request_logs", "artist"]

    @pytest.mark.asyncio
    async def test_read_schema_overview(self, toolbox: SQLAgentToolbox) -> None:
        """Should return one mapping per overview row."""
        call = await toolbox.dispatch(create_tool_call(name="read_schema_overview", pending=True))
        assert call.status == "result"
        assert call.result[1] == {"table_name": "artist", "columns_with_types_and_fks": "artist_id integer, name text"}

    @pytest.mark.asyncio
    async def test_get_schema_returns_columns(self, toolbox: SQLAgentToolbox, mock_inspector) -> None:
        """Should describe the requested table."""
        call = await toolbox.dispatch(create_tool_call(name="get_schema", arguments={"table": "artist"}, pending=True))

        assert call.status == "result"
        assert [column["column_name"] for column in call.result] == ["artist_id", "name"]
        mock_inspector.get_columns.assert_awaited_once_with("artist")

    @pytest.mark.asyncio
    async def test_get_schema_unknown_table_is_a_result(self, toolbox: SQLAgentToolbox, mock_inspector) -> None:
        """Should report a missing table as data, not as an error."""
        mock_inspector.get_columns = AsyncMock(return_value=[])

        call = await toolbox.dispatch(create_tool_call(name="get_schema", arguments={"table": "ghost"}, pending=True))

        assert call.status == "result"
        assert call.result == "No columns found for table 'ghost'. It might not exist or is not accessible."

    @pytest.mark.asyncio
    async def test_get_schema_without_table_fails(self, toolbox: SQLAgentToolbox) -> None:
        """Should fail the call when the argument is missing."""
        call = await toolbox.dispatch(create_tool_call(name="get_schema", pending=True))
        assert call.status == "error"
        assert "table" in call.error

    @pytest.mark.asyncio
    async def test_missing_overview_is_reported_to_model(self, toolbox: SQLAgentToolbox, mock_inspector) -> None:
        """Should turn a catalog query error into a tool error."""
        mock_inspector.read_overview = AsyncMock(
            side_effect=ProgrammingError("SELECT", {}, Exception('relation "schema_table_overview" does not exist'))
        )

        call = await toolbox.dispatch(create_tool_call(name="read_schema_overview", pending=True))

        assert call.status == "error"
        assert call.error.startswith("Database error:")

    @pytest.mark.asyncio
    async def test_lost_connection_propagates(self, toolbox: SQLAgentToolbox, mock_inspector) -> None:
        """Should raise a transport error when the database is gone."""
        mock_inspector.list_tables = AsyncMock(
            side_effect=DBAPIError("SELECT", {}, Exception("closed"), connection_invalidated=True)
        )

        with pytest.raises(DatabaseUnavailableError):
            await toolbox.dispatch(create_tool_call(name="list_tables", pending=True))


class TestExecuteSql:
    """The execute_sql tool."""

    @pytest.mark.asyncio
    async def test_valid_query_returns_rows(self, toolbox: SQLAgentToolbox, mock_executor) -> None:
        """Should execute accepted SQL and return its rows."""
        call = await toolbox.dispatch(
            create_tool_call(name="execute_sql", arguments={"query": "select * from artist"}, pending=True)
        )

        assert call.status == "result"
        assert len(call.result) == 2
        mock_executor.execute.assert_awaited_once_with("select * from artist")

    @pytest.mark.asyncio
    async def test_rejected_query_never_reaches_database(self, toolbox: SQLAgentToolbox, mock_executor) -> None:
        """Should stop stacked statements before execution."""
        call = await toolbox.dispatch(
            create_tool_call(name="execute_sql", arguments={"query": "SELECT * FROM t; DROP TABLE t"}, pending=True)
        )

        assert call.status == "error"
        assert call.error == "Query rejected: no statement separators allowed"
        assert call.outcome_text() == "Error: Query rejected: no statement separators allowed"
        mock_executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_execution_error_becomes_tool_error(self, toolbox: SQLAgentToolbox, mock_executor) -> None:
        """Should hand SQL errors back to the model."""
        mock_executor.execute = AsyncMock(
            return_value=ExecutionOutcome(error='Query failed: column "nme" does not exist', failure_kind="query_error")
        )

        call = await toolbox.dispatch(
            create_tool_call(name="execute_sql", arguments={"query": "select nme from artist"}, pending=True)
        )

        assert call.status == "error"
        assert "nme" in call.error

    @pytest.mark.asyncio
    async def test_empty_query_fails(self, toolbox: SQLAgentToolbox, mock_executor) -> None:
        """Should fail without touching the executor."""
        call = await toolbox.dispatch(create_tool_call(name="execute_sql", arguments={"query": "  "}, pending=True))
        assert call.status == "error"
        mock_executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, toolbox: SQLAgentToolbox, mock_executor) -> None:
        """Should not swallow a database outage."""
        mock_executor.execute = AsyncMock(side_effect=DatabaseUnavailableError("Database unreachable"))

        with pytest.raises(DatabaseUnavailableError):
            await toolbox.dispatch(
                create_tool_call(name="execute_sql", arguments={"query": "select 1"}, pending=True)
            )
