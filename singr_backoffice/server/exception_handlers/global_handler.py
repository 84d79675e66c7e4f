"""
Catch-all error response.

Anything a router did not turn into an ``HTTPException`` ends up here and
becomes a 500 with an ``error_id``. Support staff ask customers for that id
and search the logs and Logfire for it.
"""

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.monitoring import log_error

from .validation_handler import validation_exception_handler

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = uuid4().hex[:12]
    error_type = type(exc).__name__
    path = request.url.path

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {path}: {exc}",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": error_type,
        },
    )
    log_error(error_type, str(exc), context={"error_id": error_id, "path": path})

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_id": error_id, "error_type": error_type},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the 400 validation handler and the 500 catch-all on ``app``."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
