"""
Request validation error handler.

Validation failures are reported as ``400 {"detail": "<message>"}`` carrying
only the first error, so dashboard forms can show it verbatim.
"""

from typing import Any, Sequence

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from singr_backoffice.core.logging_config import get_logger

logger = get_logger(__name__)

VALUE_ERROR_PREFIX = "Value error, "


def first_error_message(errors: Sequence[Any], default: str = "Invalid request") -> str:
    """Message of the first pydantic error without the ``Value error, `` prefix."""
    if not errors:
        return default
    message = str(errors[0].get("msg") or default)
    if message.startswith(VALUE_ERROR_PREFIX):
        message = message[len(VALUE_ERROR_PREFIX):]
    return message


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = first_error_message(exc.errors())
    logger.debug(f"Validation failed for {request.method} {request.url.path}: {detail}")
    return JSONResponse(status_code=400, content={"detail": detail})
