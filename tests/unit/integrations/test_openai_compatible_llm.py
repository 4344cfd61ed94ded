"""
Unit tests for the OpenAI-compatible LLM adapter.

ChatOpenAI is replaced by a mock whose bound model streams prepared chunks.
"""

from unittest.mock import MagicMock

import httpx
import pytest
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage, SystemMessage, ToolMessage
from langchain_core.messages.tool import tool_call_chunk

from app.config.settings import get_settings
from app.core.interfaces.llm import LLMConnectionError, LLMError, LLMRateLimitError, ModelReply, TextDelta
from app.integrations.llm import OpenAICompatibleLLM, to_langchain_messages
from tests.utils import create_assistant_message, create_tool_call, create_user_message


def _llm_streaming(*chunks, error: Exception | None = None) -> OpenAICompatibleLLM:
    async def astream(messages):
        for chunk in chunks:
            yield chunk
        if error is not None:
            raise error

    bound = MagicMock()
    bound.astream = astream
    chat = MagicMock()
    chat.bind_tools.return_value = bound

    llm = OpenAICompatibleLLM(api_key="sk-test", model="gpt-4o-mini")
    llm.get_llm = MagicMock(return_value=chat)
    return llm


async def _collect(llm: OpenAICompatibleLLM):
    return [chunk async for chunk in llm.stream_reply([create_user_message()], system_prompt="prompt", tools=[])]


class TestToLangchainMessages:
    """History conversion."""

    def test_tool_calls_are_followed_by_outcomes(self) -> None:
        """Should emit one ToolMessage per resolved call."""
        history = [
            create_user_message("How many artists?"),
            create_assistant_message(
                tool_calls=[
                    create_tool_call("c1", arguments={"query": "select count(*) from artist"}, result=[{"count": 2}]),
                    create_tool_call("c2", arguments={"query": "select x"}, error="Query failed: bad"),
                ]
            ),
            create_assistant_message(content="There are 2 artists."),
        ]

        messages = to_langchain_messages(history, "system prompt")

        assert [type(m) for m in messages] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            ToolMessage,
            ToolMessage,
            AIMessage,
        ]
        assert messages[0].content == "system prompt"
        assert messages[2].tool_calls[0]["id"] == "c1"
        assert messages[3].tool_call_id == "c1"
        assert messages[3].content == '[{"count": 2}]'
        assert messages[4].content == "Error: Query failed: bad"


class TestStreamReply:
    """Streaming and aggregation."""

    @pytest.mark.asyncio
    async def test_text_deltas_then_reply(self) -> None:
        """Should relay text as it arrives and finish with the full reply."""
        llm = _llm_streaming(AIMessageChunk(content="Two "), AIMessageChunk(content="artists."))

        chunks = await _collect(llm)

        assert chunks[:2] == [TextDelta(text="Two "), TextDelta(text="artists.")]
        assert chunks[-1] == ModelReply(text="Two artists.", tool_calls=[])

    @pytest.mark.asyncio
    async def test_tool_call_fragments_are_aggregated(self) -> None:
        """Should assemble streamed argument fragments into one call."""
        llm = _llm_streaming(
            AIMessageChunk(
                content="", tool_call_chunks=[tool_call_chunk(name="execute_sql", args='{"query": ', id="c1", index=0)]
            ),
            AIMessageChunk(content="", tool_call_chunks=[tool_call_chunk(args='"select 1"}', index=0)]),
        )

        chunks = await _collect(llm)

        assert len(chunks) == 1
        reply = chunks[0]
        assert reply.tool_calls[0].id == "c1"
        assert reply.tool_calls[0].name == "execute_sql"
        assert reply.tool_calls[0].arguments == {"query": "select 1"}

    @pytest.mark.asyncio
    async def test_empty_stream_is_empty_reply(self) -> None:
        """Should still end with a reply."""
        assert await _collect(_llm_streaming()) == [ModelReply()]


class TestErrorMapping:
    """Provider failures become LLM errors."""

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        """Should map connection failures."""
        llm = _llm_streaming(error=httpx.ConnectError("refused"))
        with pytest.raises(LLMConnectionError):
            await _collect(llm)

    @pytest.mark.asyncio
    async def test_rate_limit(self) -> None:
        """Should recognise provider throttling."""
        llm = _llm_streaming(error=RuntimeError("Error code: 429 - Rate limit reached"))
        with pytest.raises(LLMRateLimitError):
            await _collect(llm)

    def test_missing_api_key(self, monkeypatch) -> None:
        """Should refuse to start without credentials."""
        monkeypatch.setattr(get_settings(), "LLM_API_KEY", None)
        with pytest.raises(LLMError):
            OpenAICompatibleLLM()
