"""
Request timing middleware.

Every request is reported to Logfire through ``log_api_request`` and gets an
``X-Process-Time`` header (milliseconds). Requests slower than
``SLOW_REQUEST_MS`` are logged as warnings; OpenKJ clients poll often enough
that a slow ``getRequests`` is usually the first sign of database trouble.
"""

import time
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.monitoring import log_api_request

logger = get_logger(__name__)

SLOW_REQUEST_MS = 1000


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class LogfireMiddleware(BaseHTTPMiddleware):
    """Times requests and reports them to Logfire."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path
        start = time.perf_counter()
        request.state.start_time = start

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = _elapsed_ms(start)
            logger.error(
                f"API request failed: {method} {path}",
                exc_info=True,
                extra={"method": method, "path": path, "duration_ms": duration_ms, "error": str(e)},
            )
            log_api_request(method=method, path=path, status_code=500, duration_ms=duration_ms)
            raise

        duration_ms = _elapsed_ms(start)
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
        log_api_request(method=method, path=path, status_code=response.status_code, duration_ms=duration_ms)

        if duration_ms > SLOW_REQUEST_MS:
            logger.warning(
                f"Slow API request: {method} {path} took {duration_ms:.2f}ms",
                extra={"method": method, "path": path, "duration_ms": duration_ms, "status_code": response.status_code},
            )

        return response
