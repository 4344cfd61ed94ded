"""
Data models for the SQL agent tools.

Single Responsibility: Define the data structures exchanged between the
catalog reader, the validator, the executor and the tool registry.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ExecutionFailureKind = Literal["missing_function", "broken_function", "read_only_violation", "query_error"]


class SchemaOverviewRow(BaseModel):
    """Compact, pre-denormalized description of one table."""

    table_name: Optional[str] = None
    columns_with_types_and_fks: Optional[str] = None


class ColumnDescriptor(BaseModel):
    """Catalog metadata for one column."""

    table_name: str
    column_name: str
    data_type: str
    is_nullable: bool


class SQLValidationResult(BaseModel):
    """Accept/reject decision of the SQL safety gate."""

    accepted: bool
    reason: Optional[str] = None
    keyword: Optional[str] = None

    @classmethod
    def accept(cls) -> "SQLValidationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str, keyword: Optional[str] = None) -> "SQLValidationResult":
        return cls(accepted=False, reason=reason, keyword=keyword)


class ExecutionOutcome(BaseModel):
    """Normalized result of running one statement through the execution function."""

    rows: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    failure_kind: Optional[ExecutionFailureKind] = None
    execution_time_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def row_count(self) -> int:
        return len(self.rows)
