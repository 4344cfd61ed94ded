import logging
from itertools import groupby

from fastapi import APIRouter, Depends

from app.core.tools.sql_agent import SchemaInspector
from app.api.dependencies import get_schema_inspector
from app.models.chat import ErrorResponse, SchemaColumn, SchemaResponse, SchemaTable

logger = logging.getLogger(__name__)

router = APIRouter(tags=["schema"])


@router.get("", response_model=SchemaResponse, responses={500: {"model": ErrorResponse}})
async def get_schema(
    inspector: SchemaInspector = Depends(get_schema_inspector),  # noqa: B008
) -> SchemaResponse:
    """Every column of the agent's schema, grouped by table."""
    columns = await inspector.get_all_columns()

    tables = [
        SchemaTable(
            table_name=table_name,
            columns=[
                SchemaColumn(column_name=c.column_name, data_type=c.data_type, is_nullable=c.is_nullable)
                for c in table_columns
            ],
        )
        for table_name, table_columns in groupby(columns, key=lambda c: c.table_name)
    ]

    logger.info(f"Schema listing: {len(tables)} tables, {len(columns)} columns")
    return SchemaResponse(schema_name=inspector.schema, tables=tables)
