"""
OpenAI-compatible LLM implementation with tool calling.

Supports any OpenAI-compatible API including:
- OpenAI (https://api.openai.com/v1)
- DeepSeek (https://api.deepseek.com/v1)
- Groq (https://api.groq.com/openai/v1)

Features:
- Uses langchain_openai.ChatOpenAI with configurable base_url
- Caching of ChatOpenAI instances
- Streaming of text deltas with aggregated tool calls
- Provider errors mapped to the LLMError hierarchy
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_openai import ChatOpenAI

from app.config.settings import get_settings
from app.core.interfaces.llm import (
    IToolCallingLLM,
    LLMConnectionError,
    LLMError,
    LLMGenerationError,
    LLMProvider,
    LLMRateLimitError,
    ModelReply,
    ReplyChunk,
    RequestedToolCall,
    TextDelta,
)
from app.models.conversation import ConversationMessage

logger = logging.getLogger(__name__)


def to_langchain_messages(messages: List[ConversationMessage], system_prompt: str) -> List[BaseMessage]:
    """
    Convert the conversation history to LangChain messages.

    Each assistant tool call is followed by one ToolMessage carrying its
    outcome, so every call must already be resolved.
    """
    lc_messages: List[BaseMessage] = [SystemMessage(content=system_prompt)]

    for message in messages:
        if message.role == "system":
            lc_messages.append(SystemMessage(content=message.content))
        elif message.role == "user":
            lc_messages.append(HumanMessage(content=message.content))
        else:
            lc_messages.append(
                AIMessage(
                    content=message.content,
                    tool_calls=[
                        {"name": call.name, "args": call.arguments, "id": call.id} for call in message.tool_calls
                    ],
                )
            )
            for call in message.tool_calls:
                lc_messages.append(ToolMessage(content=call.outcome_text(), tool_call_id=call.id))

    return lc_messages


class OpenAICompatibleLLM(IToolCallingLLM):
    """
    OpenAI-compatible chat model with tool calling.

    Example:
        ```python
        # Using settings (recommended)
        llm = OpenAICompatibleLLM()

        # Manual configuration
        llm = OpenAICompatibleLLM(provider="deepseek", api_key="sk-...", model="deepseek-chat")
        ```
    """

    # Class-level cache for ChatOpenAI instances
    # Key: (base_url, model, temperature)
    _llm_cache: dict[tuple[str, str, float], ChatOpenAI] = {}

    def __init__(
        self,
        provider: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        timeout: int | None = None,
        max_retries: int | None = None,
    ):
        """
        Initialize OpenAI-compatible LLM.

        Args:
            provider: Provider name (openai, deepseek, groq). Uses settings if not provided.
            api_key: API key. Uses LLM_API_KEY from settings if not provided.
            base_url: Base URL. Auto-detected from provider if not provided.
            model: Chat model with tool calling support.
            temperature: Sampling temperature.
            timeout: Request timeout in seconds.
            max_retries: Max retries for failed requests.
        """
        self.settings = get_settings()

        self._provider = provider or self.settings.LLM_PROVIDER
        self._api_key = api_key or self.settings.LLM_API_KEY
        self._base_url = base_url or self.settings.llm_base_url_resolved
        self._model = model or self.settings.LLM_MODEL
        self._temperature = temperature if temperature is not None else self.settings.LLM_TEMPERATURE
        self._timeout = timeout if timeout is not None else self.settings.LLM_TIMEOUT
        self._max_retries = max_retries if max_retries is not None else self.settings.LLM_MAX_RETRIES

        if not self._api_key:
            raise LLMError(
                f"API key required for {self._provider}. Set LLM_API_KEY in environment or pass api_key parameter."
            )

        logger.info(
            f"Initialized OpenAICompatibleLLM: provider={self._provider}, "
            f"base_url={self._base_url}, model={self._model}"
        )

    @property
    def provider(self) -> LLMProvider:
        """Return the LLM provider enum value."""
        try:
            return LLMProvider(self._provider)
        except ValueError:
            return LLMProvider.OPENAI

    @property
    def model_name(self) -> str:
        return self._model

    def get_llm(self) -> ChatOpenAI:
        """
        Get a cached ChatOpenAI instance.

        Instances are cached by (base_url, model, temperature) to avoid
        repeated initialization.
        """
        cache_key = (self._base_url, self._model, self._temperature)

        if cache_key in OpenAICompatibleLLM._llm_cache:
            return OpenAICompatibleLLM._llm_cache[cache_key]

        llm = ChatOpenAI(
            model=self._model,
            api_key=self._api_key,
            base_url=self._base_url,
            temperature=self._temperature,
            timeout=self._timeout,
            max_retries=self._max_retries,
            streaming=True,
        )

        OpenAICompatibleLLM._llm_cache[cache_key] = llm
        logger.info(f"Created and cached ChatOpenAI: model={self._model}, base_url={self._base_url}")

        return llm

    async def stream_reply(
        self,
        messages: List[ConversationMessage],
        *,
        system_prompt: str,
        tools: List[Dict[str, Any]],
    ) -> AsyncIterator[ReplyChunk]:
        """
        Stream one model turn.

        Text deltas are yielded as they arrive; tool call fragments are
        aggregated and reported once in the final ModelReply.

        Raises:
            LLMConnectionError: If connection fails.
            LLMRateLimitError: If rate limit is exceeded.
            LLMGenerationError: If generation fails.
        """
        lc_messages = to_langchain_messages(messages, system_prompt)
        gathered: Optional[AIMessageChunk] = None

        try:
            llm = self.get_llm().bind_tools(tools)
            async for chunk in llm.astream(lc_messages):
                gathered = chunk if gathered is None else gathered + chunk
                text = chunk.content if isinstance(chunk.content, str) else ""
                if text:
                    yield TextDelta(text=text)

        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling {self._provider} API: {e}")
            raise LLMConnectionError(f"Timeout calling {self._provider} API at {self._base_url}") from e
        except httpx.ConnectError as e:
            logger.error(f"Connection error to {self._provider}: {e}")
            raise LLMConnectionError(f"Could not connect to {self._provider} at {self._base_url}") from e
        except Exception as e:
            error_str = str(e).lower()
            if "rate_limit" in error_str or "rate limit" in error_str or "429" in str(e):
                logger.warning(f"Rate limit exceeded for {self._provider}: {e}")
                raise LLMRateLimitError(f"Rate limit exceeded for {self._provider}: {e}") from e
            logger.error(f"Error streaming reply with {self._provider}: {e}")
            raise LLMGenerationError(f"Failed to generate reply with {self._provider}: {e}") from e

        yield self._to_reply(gathered)

    @staticmethod
    def _to_reply(message: Optional[AIMessageChunk]) -> ModelReply:
        if message is None:
            return ModelReply()

        text = message.content if isinstance(message.content, str) else ""
        tool_calls = [
            RequestedToolCall(id=call.get("id") or f"call_{index}", name=call["name"], arguments=call.get("args") or {})
            for index, call in enumerate(message.tool_calls)
        ]
        return ModelReply(text=text, tool_calls=tool_calls)


def create_llm() -> OpenAICompatibleLLM:
    """Create the configured LLM client."""
    return OpenAICompatibleLLM()
