"""
SQL Agent Tools.

Read-only database tools exposed to the language model.

Components:
- SchemaInspector: Reads the schema overview and per-table column metadata
- SQLValidator: Lexical read-only gate applied before execution
- SQLExecutor: Runs validated SQL through the read-only execution function
- SQLAgentToolbox: Closed registry mapping tool names to handlers

Usage:
    ```python
    from app.core.tools.sql_agent import build_toolbox

    toolbox = build_toolbox()
    call = await toolbox.dispatch(call)
    ```
"""

from app.config.settings import Settings, get_settings
from app.database.async_db import SessionFactory, get_session_factory

from .executor import SQLExecutor, build_exec_sql_definition
from .models import ColumnDescriptor, ExecutionOutcome, SchemaOverviewRow, SQLValidationResult
from .registry import TOOL_DEFINITIONS, SQLAgentToolbox, ToolFailure, ToolName
from .schema_inspector import SchemaInspector
from .validator import SQLValidator

__all__ = [
    "TOOL_DEFINITIONS",
    "ColumnDescriptor",
    "ExecutionOutcome",
    "SQLAgentToolbox",
    "SQLExecutor",
    "SQLValidationResult",
    "SQLValidator",
    "SchemaInspector",
    "SchemaOverviewRow",
    "ToolFailure",
    "ToolName",
    "build_exec_sql_definition",
    "build_toolbox",
]


def build_toolbox(
    session_factory: SessionFactory | None = None,
    settings: Settings | None = None,
) -> SQLAgentToolbox:
    """Wire the toolbox with the configured database credential."""
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()

    inspector = SchemaInspector(
        session_factory,
        schema=settings.SQL_AGENT_SCHEMA,
        overview_table=settings.SCHEMA_OVERVIEW_TABLE,
    )
    executor = SQLExecutor(
        session_factory,
        function_name=settings.EXEC_SQL_FUNCTION,
        statement_timeout_ms=settings.SQL_STATEMENT_TIMEOUT_MS,
        grantee=f'"{settings.DB_USER}"',
    )
    return SQLAgentToolbox(inspector, executor, SQLValidator())
