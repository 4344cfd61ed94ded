"""Test utilities and helpers."""

from tests.utils.factories import (
    create_assistant_message,
    create_sql_result,
    create_tool_call,
    create_user_message,
)
from tests.utils.fakes import (
    InMemoryRequestLogStore,
    ManualClock,
    ScriptedLLM,
    make_mock_session,
    make_session_factory,
    reply_with_tools,
)

__all__ = [
    # Factories
    "create_assistant_message",
    "create_sql_result",
    "create_tool_call",
    "create_user_message",
    # Fakes
    "InMemoryRequestLogStore",
    "ManualClock",
    "ScriptedLLM",
    "make_mock_session",
    "make_session_factory",
    "reply_with_tools",
]
