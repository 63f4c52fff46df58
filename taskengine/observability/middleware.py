"""
FastAPI middleware for observability.

CorrelationMiddleware binds a request id (taken from X-Correlation-ID or
generated) for the whole request and echoes it back. RequestLoggingMiddleware
logs one line per request with status and latency; health probes and UI
status polling log at DEBUG so they do not drown out task activity.

Dependencies: fastapi, starlette, taskengine.observability
System role: Request/response observability injection
"""

import logging
import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from taskengine.observability.correlation import correlation_scope

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

_QUIET_SUFFIXES = ("/health", "/health/db", "/status", "/indexing-status")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request once, after the response or failure."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        method = request.method
        path = request.url.path

        try:
            response: Response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"{method} {path} - Unhandled {type(e).__name__}",
                extra={
                    "method": method,
                    "path": path,
                    "process_time_ms": _elapsed_ms(started),
                    "error_msg": str(e),
                },
            )
            raise

        level = logging.DEBUG if path.endswith(_QUIET_SUFFIXES) else logging.INFO
        if response.status_code >= 500:
            level = logging.ERROR
        logger.log(
            level,
            f"{method} {path} - {response.status_code}",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "process_time_ms": _elapsed_ms(started),
            },
        )
        return response


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id for the request and return it as a header."""

    async def dispatch(self, request: Request, call_next):
        with correlation_scope(request.headers.get(CORRELATION_HEADER)) as correlation_id:
            response: Response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
