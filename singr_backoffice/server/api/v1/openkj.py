"""
OpenKJ Desktop API Endpoint.

A single POST endpoint speaking the OpenKJ request-server protocol. Replies
are flat JSON objects echoing ``command`` with an ``error`` flag; failures
are reported in ``errorString`` with HTTP 200, which is what the desktop
client expects.
"""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from singr_backoffice.core.database.repositories import ApiKeyRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.openkj import OpenKJRequest
from singr_backoffice.core.monitoring import log_error, log_openkj_command
from singr_backoffice.server.services.deps import SessionDep
from singr_backoffice.server.services.openkj import OpenKJCommandError, OpenKJService
from singr_backoffice.server.services.rate_limit import FixedWindowRateLimiter, get_openkj_rate_limiter

logger = get_logger(__name__)
router = APIRouter()

RateLimiterDep = Annotated[FixedWindowRateLimiter, Depends(get_openkj_rate_limiter)]


def error_reply(command: Any, message: str, **extra: Any) -> Dict[str, Any]:
    return {"command": command, "error": True, "errorString": message, **extra}


@router.post(
    "",
    summary="OpenKJ Command",
    description="Execute an OpenKJ desktop client command authenticated by an API key.",
    response_description="Command reply in the OpenKJ wire format.",
    responses={
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Unexpected server failure"},
    },
)
async def openkj_command(request: Request, session: SessionDep, limiter: RateLimiterDep):
    """
    Run one OpenKJ command.

    The flow is rate limit by client IP, then envelope validation, then API
    key authentication, then dispatch. Every reply carries the command name.
    """
    client_ip = request.client.host if request.client else "unknown"
    if not await limiter.hit(client_ip):
        logger.warning(f"OpenKJ rate limit exceeded for {client_ip}")
        return JSONResponse(status_code=429, content={"error": True, "errorString": "Rate limit exceeded"})

    try:
        body = await request.json()
    except ValueError:
        body = None
    command = body.get("command") if isinstance(body, dict) else None
    logger.info(f"OpenKJ API request: {command} from {client_ip}")

    try:
        payload = OpenKJRequest.model_validate(body)
    except ValidationError:
        return error_reply(command, "Invalid request format")

    try:
        api_key = await ApiKeyRepository(session).authenticate(payload.api_key)
        if api_key is None:
            log_openkj_command(payload.command, None, success=False)
            return error_reply(payload.command, "Invalid API key")

        try:
            reply = await OpenKJService(session, api_key).execute(payload)
        except OpenKJCommandError as e:
            await session.commit()
            log_openkj_command(payload.command, api_key.customer_id, success=False)
            return error_reply(payload.command, e.message, **e.extra)

        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"OpenKJ API error for command {command}: {e}", exc_info=True)
        log_error(type(e).__name__, str(e), context={"command": command, "client_ip": client_ip})
        return JSONResponse(status_code=500, content=error_reply("unknown", "Internal server error"))

    log_openkj_command(payload.command, api_key.customer_id, success=not reply.get("error", False))
    return {"command": payload.command, "error": False, **reply}
