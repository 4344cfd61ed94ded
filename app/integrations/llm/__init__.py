"""
LLM Integrations

OpenAI-compatible chat model with tool calling (OpenAI, DeepSeek, Groq).
"""

from app.integrations.llm.openai_compatible import OpenAICompatibleLLM, create_llm, to_langchain_messages

__all__ = [
    "OpenAICompatibleLLM",
    "create_llm",
    "to_langchain_messages",
]
