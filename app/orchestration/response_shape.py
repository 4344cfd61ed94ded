"""
Response shape classification.

Decides, from the tool-call trace of one orchestration, whether the client
renders a result table or the model's prose. One shape per answer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from app.core.tools.sql_agent.registry import ToolName
from app.models.conversation import ToolCall

# A single row qualifies as a table only when it has more fields than this
SINGLE_ROW_FIELD_THRESHOLD = 3


class ResponseShape(str, Enum):
    TABLE = "table"
    PROSE = "prose"


@dataclass
class ShapeDecision:
    """Rendering decision for one answer."""

    shape: ResponseShape
    table_call_id: Optional[str] = None
    rows: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def show_text(self) -> bool:
        return self.shape == ResponseShape.PROSE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shape": self.shape.value,
            "table_call_id": self.table_call_id,
            "rows": self.rows,
            "show_text": self.show_text,
        }


def qualifies_as_table(rows: Any) -> bool:
    """More than one row, or exactly one row with more than three fields."""
    if not isinstance(rows, list) or not rows:
        return False
    if len(rows) > 1:
        return True
    first = rows[0]
    return isinstance(first, dict) and len(first) > SINGLE_ROW_FIELD_THRESHOLD


def classify_response(trace: Sequence[ToolCall]) -> ShapeDecision:
    """
    Pick the rendering shape for a completed orchestration.

    Only successful execute_sql results are considered. Among those that
    qualify as tabular, the last one in the trace wins; earlier ones were
    exploration and are not rendered.
    """
    table_call: Optional[ToolCall] = None
    for call in trace:
        if call.name != ToolName.EXECUTE_SQL.value or call.status != "result":
            continue
        if qualifies_as_table(call.result):
            table_call = call

    if table_call is None:
        return ShapeDecision(shape=ResponseShape.PROSE)

    return ShapeDecision(shape=ResponseShape.TABLE, table_call_id=table_call.id, rows=list(table_call.result))
