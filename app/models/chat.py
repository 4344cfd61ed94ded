"""
Pydantic models for the chat and schema endpoints
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.models.conversation import ConversationMessage, ToolCall


class StreamEventType(str, Enum):
    """Streaming event types"""

    TEXT = "text"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_RESULT = "tool_call_result"
    FINISH = "finish"
    ERROR = "error"


class ChatRequest(BaseModel):
    """A conversation to continue, oldest message first"""

    messages: List[ConversationMessage] = Field(..., description="Ordered conversation history", min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [
                    {"role": "user", "content": "How many requests were logged today?"},
                ]
            }
        }


class ChatStreamEvent(BaseModel):
    """Server-sent event emitted while the agent works"""

    event_type: StreamEventType = Field(..., description="Streaming event type")
    text: Optional[str] = Field(None, description="Text delta (text events)")
    tool_call: Optional[ToolCall] = Field(None, description="Tool call (tool_call_* events)")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Event metadata")

    class Config:
        json_schema_extra = {
            "example": {
                "event_type": "tool_call_start",
                "tool_call": {"id": "call_1", "name": "read_schema_overview", "arguments": {}, "status": "pending"},
                "metadata": {"step": 0},
            }
        }


class ChatCompletionResponse(BaseModel):
    """Final answer of one orchestration"""

    status: Literal["done", "step_budget_exceeded", "failed", "cancelled"]
    text: str = Field("", description="Model prose, empty when a table is rendered instead")
    shape: Literal["table", "prose"] = Field("prose", description="How the client should render the answer")
    table: Optional[List[Dict[str, Any]]] = Field(None, description="Rows to render when shape is table")
    incomplete: bool = Field(False, description="True when the loop stopped before a final answer")
    stop_reason: Optional[str] = Field(None, description="completed, max_steps, timeout, cancelled, unknown_tool")
    steps: int = Field(0, description="Model/tool round trips performed")
    tool_calls: List[ToolCall] = Field(default_factory=list, description="Tool calls of this turn, in order")

    class Config:
        json_schema_extra = {
            "example": {
                "status": "done",
                "text": "There were 42 requests logged today.",
                "shape": "prose",
                "table": None,
                "incomplete": False,
                "stop_reason": "completed",
                "steps": 2,
                "tool_calls": [],
            }
        }


class ErrorResponse(BaseModel):
    """Error body returned on terminal failures"""

    error: str = Field(..., description="Error kind")
    message: str = Field(..., description="Human-readable error message")


class SchemaColumn(BaseModel):
    column_name: str
    data_type: str
    is_nullable: bool


class SchemaTable(BaseModel):
    table_name: str
    columns: List[SchemaColumn] = Field(default_factory=list)


class SchemaResponse(BaseModel):
    """All columns of the agent's schema, grouped by table"""

    schema_name: str
    tables: List[SchemaTable] = Field(default_factory=list)
