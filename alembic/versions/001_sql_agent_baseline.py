"""Baseline migration - request log, schema overview and read-only execution function.

Revision ID: 001_sql_agent_baseline
Revises: None
Create Date: 2026-10-19

Objects created in the public schema:
- api_request_logs: append-only log read by the rate limiter
- schema_table_overview: one row per table with columns, types and foreign keys
- exec_sql(text): runs one statement in a forced read-only transaction and
  returns the rows as a JSON array
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op
from app.config.settings import get_settings
from app.core.tools.sql_agent.executor import build_exec_sql_definition

# revision identifiers, used by Alembic.
revision: str = "001_sql_agent_baseline"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA_OVERVIEW_VIEW = """
CREATE OR REPLACE VIEW public.{view_name} AS
SELECT
    c.table_name::text AS table_name,
    string_agg(
        c.column_name || ' ' || c.data_type
            || CASE WHEN c.is_nullable = 'NO' THEN ' not null' ELSE '' END
            || CASE
                WHEN fk.foreign_table IS NOT NULL THEN ' references ' || fk.foreign_table || '(' || fk.foreign_column || ')'
                ELSE ''
            END,
        ', ' ORDER BY c.ordinal_position
    ) AS columns_with_types_and_fks
FROM information_schema.columns c
JOIN information_schema.tables t
    ON t.table_schema = c.table_schema
    AND t.table_name = c.table_name
    AND t.table_type = 'BASE TABLE'
LEFT JOIN (
    SELECT DISTINCT ON (kcu.table_schema, kcu.table_name, kcu.column_name)
        kcu.table_schema,
        kcu.table_name,
        kcu.column_name,
        ccu.table_name AS foreign_table,
        ccu.column_name AS foreign_column
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON kcu.constraint_name = tc.constraint_name
        AND kcu.table_schema = tc.table_schema
    JOIN information_schema.constraint_column_usage ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
) fk
    ON fk.table_schema = c.table_schema
    AND fk.table_name = c.table_name
    AND fk.column_name = c.column_name
WHERE c.table_schema = '{schema}'
GROUP BY c.table_name
"""


def upgrade() -> None:
    settings = get_settings()

    op.create_table(
        "api_request_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("ip_address", sa.String(length=255), nullable=False, comment="Client identifier"),
        sa.Column("path", sa.String(length=255), nullable=True, comment="Request path"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_api_request_logs_ip_created_at", "api_request_logs", ["ip_address", "created_at"])

    op.execute(SCHEMA_OVERVIEW_VIEW.format(view_name=settings.SCHEMA_OVERVIEW_TABLE, schema=settings.SQL_AGENT_SCHEMA))

    op.execute(
        build_exec_sql_definition(
            function_name=settings.EXEC_SQL_FUNCTION,
            grantee=f'"{settings.DB_USER}"',
            statement_timeout_ms=settings.SQL_STATEMENT_TIMEOUT_MS,
        )
    )


def downgrade() -> None:
    settings = get_settings()

    op.execute(f"DROP FUNCTION IF EXISTS public.{settings.EXEC_SQL_FUNCTION}(text)")
    op.execute(f"DROP VIEW IF EXISTS public.{settings.SCHEMA_OVERVIEW_TABLE}")
    op.drop_index("idx_api_request_logs_ip_created_at", table_name="api_request_logs")
    op.drop_table("api_request_logs")
