"""
Request logging middleware. One line per request: method, path, status, duration.
Query strings are left out; sync callers put filters and keys there.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 5000.0


def _level_for(status: int, duration_ms: float) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400 or duration_ms >= SLOW_REQUEST_MS:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        method = request.method
        path = request.scope.get("path", "")
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_failed method=%s path=%s duration_ms=%.1f", method, path, duration_ms
            )
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        status = response.status_code
        logger.log(
            _level_for(status, duration_ms),
            "request_finished method=%s path=%s status=%s duration_ms=%.1f",
            method, path, status, duration_ms,
        )
        return response
