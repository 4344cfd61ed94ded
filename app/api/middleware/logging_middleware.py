"""
Request logging middleware for FastAPI application.

Logs method, path, client, status and duration of every request and tags
both the request and the response with a correlation ID.
"""

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.api.client import get_client_id

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    HTTP middleware for request/response logging.

    Streaming responses are logged when their headers are sent; the stream
    itself is not awaited here.
    """

    # High-frequency, low-value paths
    EXCLUDE_PATHS: tuple[str, ...] = ("/health", "/favicon.ico")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex[:8]
        request.state.correlation_id = correlation_id
        quiet = request.url.path.startswith(self.EXCLUDE_PATHS)

        start_time = time.perf_counter()
        if not quiet:
            logger.info(f"[{correlation_id}] --> {request.method} {request.url.path} from {get_client_id(request)}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(f"[{correlation_id}] <-- {request.method} {request.url.path} ERROR in {duration_ms:.2f}ms: {e}")
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        if not quiet:
            log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
            logger.log(
                log_level,
                f"[{correlation_id}] <-- {request.method} {request.url.path} "
                f"{response.status_code} in {duration_ms:.2f}ms",
            )

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"
        return response
