"""
Core Interfaces Module

Abstract interfaces (ports) for the language model and the rate-limit
request log. Concrete implementations live in app.integrations and
app.repositories.
"""

# LLM interfaces
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

# Request log interfaces
from app.core.interfaces.request_log import IRequestLogStore, RequestLogStoreError

__all__ = [
    # LLM
    "IToolCallingLLM",
    "LLMConnectionError",
    "LLMError",
    "LLMGenerationError",
    "LLMProvider",
    "LLMRateLimitError",
    "ModelReply",
    "ReplyChunk",
    "RequestedToolCall",
    "TextDelta",
    # Request log
    "IRequestLogStore",
    "RequestLogStoreError",
]
