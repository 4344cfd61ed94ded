"""
Application lifecycle management using modern FastAPI lifespan pattern.

Startup checks configuration and database reachability; shutdown releases
pooled connections and shared clients.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies import reset_dependencies
from app.config.settings import get_settings
from app.database.async_db import dispose_engine, get_async_db_context
from app.integrations.databases.redis import close_async_redis_client

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Manages application lifecycle events.

    Startup never blocks on an unreachable collaborator: requests report
    transport failures individually.
    """

    def __init__(self) -> None:
        self._initialized = False

    async def startup(self) -> None:
        if self._initialized:
            logger.warning("Lifecycle already initialized, skipping startup")
            return

        logger.info("Starting application lifecycle...")
        self._verify_configurations()
        await self._verify_database()

        self._initialized = True
        logger.info("Application lifecycle startup completed")

    async def shutdown(self) -> None:
        if not self._initialized:
            logger.warning("Lifecycle not initialized, skipping shutdown")
            return

        logger.info("Stopping application lifecycle...")
        reset_dependencies()
        await dispose_engine()

        if get_settings().RATE_LIMIT_BACKEND == "redis":
            await close_async_redis_client()

        self._initialized = False
        logger.info("Application lifecycle shutdown completed")

    def _verify_configurations(self) -> None:
        """Verify critical application configurations."""
        settings = get_settings()

        if not settings.LLM_API_KEY:
            logger.warning("LLM_API_KEY not configured - chat requests will fail")

        if not settings.RATE_LIMIT_ENABLED:
            logger.warning("Rate limiting is disabled via RATE_LIMIT_ENABLED=False")

        logger.info(
            f"Agent limits: max_steps={settings.AGENT_MAX_STEPS}, "
            f"timeout={settings.AGENT_TIMEOUT_SECONDS}s, "
            f"rate_limit={settings.RATE_LIMIT_REQUESTS}/{settings.RATE_LIMIT_WINDOW_SECONDS}s "
            f"({settings.RATE_LIMIT_BACKEND})"
        )

    async def _verify_database(self) -> None:
        """Check that the agent's credential can reach the database."""
        try:
            async with get_async_db_context() as session:
                await session.execute(text("SELECT 1"))
            logger.info("Database connectivity verified")
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database not reachable at startup: {e}")


# Global lifecycle manager instance
_lifecycle_manager = LifecycleManager()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Modern lifespan context manager for FastAPI.

    Args:
        app: FastAPI application instance

    Yields:
        None during application runtime
    """
    await _lifecycle_manager.startup()
    try:
        yield
    finally:
        await _lifecycle_manager.shutdown()
