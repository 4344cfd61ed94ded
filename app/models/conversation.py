import json
from typing import Any, ClassVar, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ToolCallStatus = Literal["pending", "result", "error"]


class ToolCall(BaseModel):
    """
    One tool invocation requested by the model.

    Created pending, resolved exactly once with a result or an error.
    """

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = "pending"
    result: Any = None
    error: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"

    def complete(self, result: Any) -> "ToolCall":
        """Resolve the call with a result payload."""
        self._ensure_pending()
        self.status = "result"
        self.result = result
        return self

    def fail(self, message: str) -> "ToolCall":
        """Resolve the call with an error message."""
        self._ensure_pending()
        self.status = "error"
        self.error = message
        return self

    def outcome_text(self) -> str:
        """Text handed back to the model for this call."""
        if self.status == "error":
            return f"Error: {self.error}"
        if isinstance(self.result, str):
            return self.result
        return json.dumps(self.result, ensure_ascii=False, default=str)

    def _ensure_pending(self) -> None:
        if not self.is_pending:
            raise ValueError(f"Tool call {self.id} ({self.name}) already resolved as {self.status}")


class ConversationMessage(BaseModel):
    """A single message of the causal history sent to the model each turn."""

    role: Literal["user", "assistant", "system"]
    content: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)

    model_config: ClassVar[ConfigDict] = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "role": "user",
                "content": "Which artist has the most albums?",
                "tool_calls": [],
            }
        },
    )
