"""
FastAPI dependencies.

Collaborators (language model, toolbox, request log) are created once and
shared; the orchestrator itself is built per request and holds no state
beyond it.
"""

import logging

from fastapi import Depends, Request

from app.api.client import get_client_id
from app.config.settings import Settings, get_settings
from app.core.exceptions import AdmissionDeniedError
from app.core.interfaces.llm import IToolCallingLLM
from app.core.interfaces.request_log import IRequestLogStore
from app.core.tools.sql_agent import SchemaInspector, SQLAgentToolbox, build_toolbox
from app.database.async_db import get_session_factory
from app.integrations.databases.redis import get_async_redis_client
from app.integrations.llm import create_llm
from app.orchestration import ToolOrchestrator
from app.prompts.sql_agent_prompt import build_system_prompt
from app.repositories import RedisRequestLogRepository, SQLRequestLogRepository
from app.services.rate_limiter_service import SlidingWindowRateLimiter, build_rate_limiter

logger = logging.getLogger(__name__)

_llm: IToolCallingLLM | None = None
_toolbox: SQLAgentToolbox | None = None
_rate_limiter: SlidingWindowRateLimiter | None = None


def get_llm() -> IToolCallingLLM:
    """Shared tool-calling LLM client."""
    global _llm
    if _llm is None:
        _llm = create_llm()
    return _llm


def get_toolbox() -> SQLAgentToolbox:
    """Shared toolbox bound to the agent's database credential."""
    global _toolbox
    if _toolbox is None:
        _toolbox = build_toolbox()
    return _toolbox


def get_schema_inspector(toolbox: SQLAgentToolbox = Depends(get_toolbox)) -> SchemaInspector:  # noqa: B008
    return toolbox.inspector


def get_request_log_store(settings: Settings) -> IRequestLogStore:
    """Pick the request log backend configured by RATE_LIMIT_BACKEND."""
    if settings.RATE_LIMIT_BACKEND == "redis":
        logger.info("Rate limiter using Redis request log")
        return RedisRequestLogRepository(get_async_redis_client(), window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS)
    logger.info("Rate limiter using database request log")
    return SQLRequestLogRepository(get_session_factory())


def get_rate_limiter() -> SlidingWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = build_rate_limiter(get_request_log_store(settings), settings)
    return _rate_limiter


async def enforce_rate_limit(
    request: Request,
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),  # noqa: B008
) -> None:
    """
    Admission control, applied before any streaming starts.

    Raises:
        AdmissionDeniedError: If the client exceeded its window
    """
    if not get_settings().RATE_LIMIT_ENABLED:
        return

    result = await limiter.admit(get_client_id(request), path=request.url.path)
    if not result.allowed:
        raise AdmissionDeniedError(result.retry_after_seconds or limiter.window_seconds)


def get_orchestrator(
    llm: IToolCallingLLM = Depends(get_llm),  # noqa: B008
    toolbox: SQLAgentToolbox = Depends(get_toolbox),  # noqa: B008
) -> ToolOrchestrator:
    """Per-request orchestrator."""
    settings = get_settings()
    return ToolOrchestrator(
        llm=llm,
        toolbox=toolbox,
        system_prompt=build_system_prompt(settings.SQL_AGENT_SCHEMA),
        max_steps=settings.AGENT_MAX_STEPS,
        timeout_seconds=settings.AGENT_TIMEOUT_SECONDS,
    )


def reset_dependencies() -> None:
    """Drop shared collaborators (application shutdown)."""
    global _llm, _toolbox, _rate_limiter
    _llm = None
    _toolbox = None
    _rate_limiter = None
