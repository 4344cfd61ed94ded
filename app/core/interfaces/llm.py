"""
Interfaces for LLM providers.

The orchestrator only needs one capability from a language model: stream a
reply to a message history, given a system prompt and a tool registry. Any
OpenAI-compatible provider can implement it.
"""

from abc import abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Protocol, Union, runtime_checkable

from pydantic import BaseModel, Field

from app.core.exceptions import TransportError
from app.models.conversation import ConversationMessage


class LLMProvider(str, Enum):
    """Supported LLM providers (all OpenAI-compatible)."""

    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    GROQ = "groq"


class RequestedToolCall(BaseModel):
    """A tool invocation as emitted by the model, before dispatch."""

    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class TextDelta(BaseModel):
    """A fragment of assistant text streamed as it is generated."""

    text: str


class ModelReply(BaseModel):
    """The complete reply of one model turn."""

    text: str = ""
    tool_calls: List[RequestedToolCall] = Field(default_factory=list)


ReplyChunk = Union[TextDelta, ModelReply]


@runtime_checkable
class IToolCallingLLM(Protocol):
    """
    Interface for a chat model with tool calling.

    Example:
        ```python
        async for chunk in llm.stream_reply(history, system_prompt=prompt, tools=TOOL_DEFINITIONS):
            if isinstance(chunk, TextDelta):
                print(chunk.text, end="")
            else:
                reply = chunk
        ```
    """

    @property
    @abstractmethod
    def provider(self) -> LLMProvider:
        """LLM provider"""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name"""
        ...

    @abstractmethod
    def stream_reply(
        self,
        messages: List[ConversationMessage],
        *,
        system_prompt: str,
        tools: List[Dict[str, Any]],
    ) -> AsyncIterator[ReplyChunk]:
        """
        Stream one model turn.

        Yields zero or more TextDelta chunks followed by exactly one ModelReply
        holding the full text and any requested tool calls.

        Raises:
            LLMError: If the provider cannot be reached or fails to answer
        """
        ...


# Exceptions
class LLMError(TransportError):
    """Base error for LLM providers"""

    pass


class LLMConnectionError(LLMError):
    """The provider could not be reached"""

    pass


class LLMGenerationError(LLMError):
    """The provider failed while generating"""

    pass


class LLMRateLimitError(LLMError):
    """Provider rate limit exceeded"""

    pass
