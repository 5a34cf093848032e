"""Structured logging configuration using *structlog*.

Provides ``setup_logging`` to initialise structlog with JSON output and a
lightweight ASGI middleware class that logs every HTTP request with method,
path, status code, and duration.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def setup_logging(log_level: str = "INFO") -> None:
    """Configure structlog with JSON rendering.

    Parameters:
        log_level: Minimum log level to emit (e.g. ``"DEBUG"``, ``"INFO"``).
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(log_level),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that emits a structured log line for every request.

    Each log entry contains:
    - ``method``: HTTP method (GET, POST, ...)
    - ``path``: Request path
    - ``status_code``: Response status code
    - ``duration_ms``: Round-trip time in milliseconds

    Request count and duration are also recorded on the exporter's
    instruments when the app carries them in ``app.state.exporter``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = structlog.get_logger("proxysql_exporter.access")
        start = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        await logger.adebug(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        exporter = getattr(request.app.state, "exporter", None)
        if exporter is not None:
            endpoint = request.url.path
            exporter.metrics.request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=str(response.status_code),
            ).inc()
            exporter.metrics.request_duration.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration_ms / 1000.0)

        return response
