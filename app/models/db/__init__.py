"""
Database models package
"""

from .base import Base
from .request_log import ApiRequestLog

__all__ = [
    "ApiRequestLog",
    "Base",
]
