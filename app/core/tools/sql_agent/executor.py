"""
SQL Executor.

Single Responsibility: Run an already validated statement through the
read-only execution function and normalize its result or error.
"""

import json
import logging
import re
import time
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from app.core.exceptions import DatabaseUnavailableError
from app.core.tools.sql_agent.models import ExecutionOutcome
from app.database.async_db import SessionFactory, is_connection_error

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

EXEC_SQL_DEFINITION_TEMPLATE = """CREATE OR REPLACE FUNCTION public.{function_name}(query text)
RETURNS json
LANGUAGE plpgsql
SECURITY DEFINER
SET search_path = public
AS $$
DECLARE
    result json;
BEGIN
    SET LOCAL transaction_read_only = on;
    SET LOCAL statement_timeout = '{statement_timeout_ms}ms';
    EXECUTE format('SELECT coalesce(json_agg(t), ''[]''::json) FROM (%s) t', query) INTO result;
    RETURN result;
END;
$$;

REVOKE ALL ON FUNCTION public.{function_name}(text) FROM PUBLIC;
GRANT EXECUTE ON FUNCTION public.{function_name}(text) TO {grantee};"""


def build_exec_sql_definition(
    function_name: str = "exec_sql",
    grantee: str = "CURRENT_USER",
    statement_timeout_ms: int = 8000,
) -> str:
    """
    DDL of the execution function the executor depends on.

    The function forces a read-only transaction server-side and returns the
    rows as a JSON array of objects. json (not jsonb) keeps column order.
    """
    return EXEC_SQL_DEFINITION_TEMPLATE.format(
        function_name=function_name,
        grantee=grantee,
        statement_timeout_ms=int(statement_timeout_ms),
    )


class SQLExecutor:
    """
    Executes validated SQL through the restricted execution function.

    Single Responsibility: Safe execution and result normalization.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        function_name: str = "exec_sql",
        statement_timeout_ms: int = 8000,
        grantee: str = "CURRENT_USER",
    ):
        """
        Args:
            session_factory: Opens sessions with the agent's database credential
            function_name: Name of the read-only execution function
            statement_timeout_ms: Per-statement timeout applied to the transaction
            grantee: Role named in the remedial GRANT when the function is missing
        """
        if not IDENTIFIER_PATTERN.match(function_name):
            raise ValueError(f"Invalid execution function name: {function_name!r}")

        self._session_factory = session_factory
        self._function_name = function_name
        self._statement_timeout_ms = int(statement_timeout_ms)
        self._grantee = grantee
        self._call_query = text(f"SELECT {function_name}(:query)")

    @property
    def remedy(self) -> str:
        """The exact definition an operator must install."""
        return build_exec_sql_definition(self._function_name, self._grantee, self._statement_timeout_ms)

    async def execute(self, sql_query: str) -> ExecutionOutcome:
        """
        Execute a statement that already passed the SQL validator.

        Args:
            sql_query: Validated SQL, sent verbatim

        Returns:
            ExecutionOutcome with rows on success or a descriptive error

        Raises:
            DatabaseUnavailableError: If the database cannot be reached
        """
        logger.info(f"Executing agent SQL: {sql_query[:200]}")
        start_time = time.perf_counter()

        try:
            async with self._session_factory() as session:
                try:
                    # Client-side guard on top of the function's own read-only scope
                    await session.execute(text("SET TRANSACTION READ ONLY"))
                    await session.execute(text(f"SET LOCAL statement_timeout = {self._statement_timeout_ms}"))
                    result = await session.execute(self._call_query, {"query": sql_query})
                    payload = result.scalar()
                finally:
                    await session.rollback()
        except DBAPIError as e:
            if is_connection_error(e):
                logger.error(f"Database unreachable while executing SQL: {e}")
                raise DatabaseUnavailableError(f"Database unreachable: {e.orig or e}") from e
            return self._failure(e)
        except (OSError, ConnectionError) as e:
            logger.error(f"Database unreachable while executing SQL: {e}")
            raise DatabaseUnavailableError(f"Database unreachable: {e}") from e

        rows = self._normalize_rows(payload)
        execution_time = (time.perf_counter() - start_time) * 1000
        logger.info(f"Agent SQL returned {len(rows)} rows in {execution_time:.1f}ms")
        return ExecutionOutcome(rows=rows, execution_time_ms=execution_time)

    def _failure(self, error: DBAPIError) -> ExecutionOutcome:
        message = str(error.orig) if error.orig is not None else str(error)
        lowered = message.lower()
        function_name = self._function_name.lower()

        if function_name in lowered and "does not exist" in lowered:
            logger.error(f"Execution function '{self._function_name}' is missing")
            return ExecutionOutcome(
                error=(
                    f"The database helper function '{self._function_name}' is missing. "
                    f"An operator must run the following SQL to create it:\n\n{self.remedy}"
                ),
                failure_kind="missing_function",
            )

        if "permission denied for function" in lowered:
            logger.error(f"Execution function '{self._function_name}' is not executable: {message}")
            return ExecutionOutcome(
                error=(
                    f"The database helper function '{self._function_name}' is not usable ({message}). "
                    f"An operator must (re)install it with:\n\n{self.remedy}"
                ),
                failure_kind="broken_function",
            )

        if "read-only transaction" in lowered:
            logger.warning(f"Statement blocked by read-only transaction: {message}")
            return ExecutionOutcome(
                error=f"Statement blocked by the read-only transaction: {message}",
                failure_kind="read_only_violation",
            )

        logger.warning(f"Agent SQL failed: {message}")
        return ExecutionOutcome(error=f"Query failed: {message}", failure_kind="query_error")

    @staticmethod
    def _normalize_rows(payload: Any) -> List[Dict[str, Any]]:
        """Coerce the function's JSON payload into a list of row mappings."""
        if payload is None:
            return []
        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload)
        if isinstance(payload, dict):
            return [payload]
        return list(payload)
