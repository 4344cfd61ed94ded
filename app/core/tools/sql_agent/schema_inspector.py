"""
Database Schema Inspector.

Single Responsibility: Read table and column metadata for the agent.

Nothing is cached across requests. Every statement here is fixed text with
bound parameters; user-supplied SQL never passes through this module.
"""

import logging
import re
from typing import List

from sqlalchemy import text

from app.core.tools.sql_agent.models import ColumnDescriptor, SchemaOverviewRow
from app.database.async_db import SessionFactory

logger = logging.getLogger(__name__)

# Optionally schema-qualified identifier, e.g. "schema_table_overview" or "public.schema_table_overview"
QUALIFIED_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

LIST_TABLES_QUERY = text(
    """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = :schema
    AND table_type = 'BASE TABLE'
    ORDER BY table_name
    """
)

COLUMNS_QUERY = text(
    """
    SELECT table_name, column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema = :schema
    AND table_name = :table_name
    ORDER BY ordinal_position
    """
)

ALL_COLUMNS_QUERY = text(
    """
    SELECT table_name, column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema = :schema
    ORDER BY table_name, ordinal_position
    """
)


class SchemaInspector:
    """
    Schema catalog reader.

    The overview table is the preferred source; per-table column lookups
    are the fallback when the overview is not detailed enough.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        schema: str = "public",
        overview_table: str = "schema_table_overview",
    ):
        """
        Args:
            session_factory: Opens sessions with the agent's database credential
            schema: Fixed schema the column lookups are filtered to
            overview_table: Name of the pre-maintained summary table or view
        """
        if not QUALIFIED_IDENTIFIER_PATTERN.match(overview_table):
            raise ValueError(f"Invalid overview table name: {overview_table!r}")

        self._session_factory = session_factory
        self._schema = schema
        self._overview_query = text(
            f"SELECT table_name, columns_with_types_and_fks FROM {overview_table} ORDER BY table_name"
        )

    @property
    def schema(self) -> str:
        return self._schema

    async def list_tables(self) -> List[str]:
        """Names of the base tables in the fixed schema."""
        async with self._session_factory() as session:
            result = await session.execute(LIST_TABLES_QUERY, {"schema": self._schema})
            return [row[0] for row in result.fetchall()]

    async def read_overview(self) -> List[SchemaOverviewRow]:
        """Read the whole schema overview in a single query."""
        async with self._session_factory() as session:
            result = await session.execute(self._overview_query)
            rows = result.fetchall()

        logger.info(f"Schema overview read: {len(rows)} tables")
        return [SchemaOverviewRow(table_name=row[0], columns_with_types_and_fks=row[1]) for row in rows]

    async def get_columns(self, table_name: str) -> List[ColumnDescriptor]:
        """
        Column metadata for one table.

        Returns an empty list when the table does not exist or is not visible
        to the agent's credential.
        """
        async with self._session_factory() as session:
            result = await session.execute(COLUMNS_QUERY, {"schema": self._schema, "table_name": table_name})
            rows = result.fetchall()

        if not rows:
            logger.info(f"No columns found for table '{table_name}' in schema '{self._schema}'")
        return [self._to_descriptor(row) for row in rows]

    async def get_all_columns(self) -> List[ColumnDescriptor]:
        """Every column of the fixed schema, ordered by table and position."""
        async with self._session_factory() as session:
            result = await session.execute(ALL_COLUMNS_QUERY, {"schema": self._schema})
            return [self._to_descriptor(row) for row in result.fetchall()]

    @staticmethod
    def _to_descriptor(row) -> ColumnDescriptor:
        return ColumnDescriptor(
            table_name=row[0],
            column_name=row[1],
            data_type=row[2],
            is_nullable=row[3] == "YES",
        )
