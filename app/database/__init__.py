"""
Database access for the agent's single fixed credential.
"""

from app.database.async_db import (
    SessionFactory,
    dispose_engine,
    get_async_db_context,
    get_async_engine,
    get_session_factory,
    is_connection_error,
)

__all__ = [
    "SessionFactory",
    "dispose_engine",
    "get_async_db_context",
    "get_async_engine",
    "get_session_factory",
    "is_connection_error",
]
