"""
Tool registry for the SQL agent.

The set of tools the model may call is closed: every ToolName member maps to
exactly one handler, and names outside the enum are rejected before dispatch.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List

from sqlalchemy.exc import DBAPIError

from app.core.exceptions import DatabaseUnavailableError, UnknownToolError
from app.core.tools.sql_agent.executor import SQLExecutor
from app.core.tools.sql_agent.schema_inspector import SchemaInspector
from app.core.tools.sql_agent.validator import SQLValidator
from app.database.async_db import is_connection_error
from app.models.conversation import ToolCall

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    """Tools exposed to the language model."""

    LIST_TABLES = "list_tables"
    READ_SCHEMA_OVERVIEW = "read_schema_overview"
    GET_SCHEMA = "get_schema"
    EXECUTE_SQL = "execute_sql"


# OpenAI function-calling schemas, in the order they are offered to the model
TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": ToolName.LIST_TABLES.value,
            "description": "List the names of all tables in the database schema.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": ToolName.READ_SCHEMA_OVERVIEW.value,
            "description": (
                "Read the schema overview: one row per table with its columns, data types and "
                "foreign keys. Always call this before writing any SQL."
            ),
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": ToolName.GET_SCHEMA.value,
            "description": (
                "Get the columns of one table. Use only when the schema overview does not "
                "give enough detail about that table."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "table": {"type": "string", "description": "Name of the table to describe"},
                },
                "required": ["table"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": ToolName.EXECUTE_SQL.value,
            "description": (
                "Execute a single read-only SQL query (SELECT, WITH or VALUES) and return the rows "
                "as JSON. Do not end the query with a semicolon."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The SQL query to execute"},
                },
                "required": ["query"],
            },
        },
    },
]

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


class ToolFailure(Exception):
    """A tool finished with an error outcome that is reported back to the model."""


class SQLAgentToolbox:
    """
    Binds each ToolName to its handler and resolves pending tool calls.

    Validation rejections, execution failures and missing tables become tool
    outcomes. Only transport failures (database unreachable) propagate.
    """

    def __init__(
        self,
        inspector: SchemaInspector,
        executor: SQLExecutor,
        validator: SQLValidator | None = None,
    ):
        self.inspector = inspector
        self.executor = executor
        self.validator = validator or SQLValidator()

        self._handlers: Dict[ToolName, ToolHandler] = {
            ToolName.LIST_TABLES: self._list_tables,
            ToolName.READ_SCHEMA_OVERVIEW: self._read_schema_overview,
            ToolName.GET_SCHEMA: self._get_schema,
            ToolName.EXECUTE_SQL: self._execute_sql,
        }
        missing = set(ToolName) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Tools without handler: {sorted(tool.value for tool in missing)}")

    @property
    def definitions(self) -> List[Dict[str, Any]]:
        return TOOL_DEFINITIONS

    @staticmethod
    def is_known(name: str) -> bool:
        return name in ToolName._value2member_map_

    def resolve(self, name: str) -> ToolHandler:
        """
        Look up the handler for a tool name.

        Raises:
            UnknownToolError: If the name is not part of the registry
        """
        if not self.is_known(name):
            raise UnknownToolError(name)
        return self._handlers[ToolName(name)]

    async def dispatch(self, call: ToolCall) -> ToolCall:
        """
        Run one pending tool call to a terminal outcome.

        Args:
            call: Pending call requested by the model

        Returns:
            The same call, resolved with a result or an error

        Raises:
            UnknownToolError: If the call names a tool outside the registry
            DatabaseUnavailableError: If the database cannot be reached
        """
        handler = self.resolve(call.name)
        logger.info(f"Dispatching tool {call.name} (id={call.id})")

        try:
            result = await handler(call.arguments)
        except ToolFailure as e:
            logger.info(f"Tool {call.name} returned an error: {e}")
            return call.fail(str(e))
        except DBAPIError as e:
            if is_connection_error(e):
                logger.error(f"Database unreachable during tool {call.name}: {e}")
                raise DatabaseUnavailableError(f"Database unreachable: {e.orig or e}") from e
            # e.g. a missing overview table: reported to the model so it can fall back
            logger.warning(f"Catalog query failed in tool {call.name}: {e}")
            return call.fail(f"Database error: {e.orig or e}")
        except (OSError, ConnectionError) as e:
            logger.error(f"Database unreachable during tool {call.name}: {e}")
            raise DatabaseUnavailableError(f"Database unreachable: {e}") from e

        return call.complete(result)

    async def _list_tables(self, arguments: Dict[str, Any]) -> List[str]:
        return await self.inspector.list_tables()

    async def _read_schema_overview(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows = await self.inspector.read_overview()
        return [row.model_dump() for row in rows]

    async def _get_schema(self, arguments: Dict[str, Any]) -> Any:
        table = arguments.get("table")
        if not isinstance(table, str) or not table.strip():
            raise ToolFailure("Missing required argument 'table'.")

        columns = await self.inspector.get_columns(table.strip())
        if not columns:
            # Data-availability signal, not an error
            return f"No columns found for table '{table}'. It might not exist or is not accessible."
        return [column.model_dump() for column in columns]

    async def _execute_sql(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolFailure("Missing required argument 'query'.")

        validation = self.validator.validate(query)
        if not validation.accepted:
            raise ToolFailure(f"Query rejected: {validation.reason}")

        outcome = await self.executor.execute(query)
        if not outcome.ok:
            raise ToolFailure(outcome.error)
        return outcome.rows
