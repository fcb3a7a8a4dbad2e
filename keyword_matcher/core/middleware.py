"""
Request middleware: correlation id and request logging.
Health checks are logged at debug level so they do not drown batch-run events.
"""

import time
from typing import Callable

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

HEALTH_CHECK_PATHS = {"/", "/health", "/api/targeting/health"}


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request's method, path, status and latency."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        path = request.url.path
        log = logger.debug if path in HEALTH_CHECK_PATHS else logger.info
        log(
            "Request started",
            method=request.method,
            path=path,
            client_ip=request.client.host if request.client else "unknown",
        )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request failed", method=request.method, path=path, process_time_ms=_elapsed_ms(start)
            )
            raise

        log(
            "Request completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            process_time_ms=_elapsed_ms(start),
        )
        return response


def setup_middleware(app):
    # Starlette runs middleware LIFO: the correlation id is added last so it wraps the logger
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        update_request_header=True,
    )
