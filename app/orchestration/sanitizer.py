"""
Conversation history sanitization.

The model protocol requires a one-to-one match between tool calls and tool
outcomes, so calls left pending (e.g. the user aborted mid-call) are removed
before the history is resubmitted.
"""

import logging
from typing import List

from app.models.conversation import ConversationMessage

logger = logging.getLogger(__name__)


def sanitize_history(messages: List[ConversationMessage]) -> List[ConversationMessage]:
    """
    Return a copy of the history without pending tool calls.

    An assistant message left with no text and no calls after stripping is
    dropped entirely. The input list is not modified.
    """
    sanitized: List[ConversationMessage] = []
    dropped = 0

    for message in messages:
        kept_calls = [call.model_copy(deep=True) for call in message.tool_calls if call.is_terminal]
        dropped += len(message.tool_calls) - len(kept_calls)

        if message.tool_calls and not kept_calls and not message.content:
            continue

        sanitized.append(message.model_copy(update={"tool_calls": kept_calls}))

    if dropped:
        logger.info(f"Dropped {dropped} pending tool call(s) from conversation history")
    return sanitized
