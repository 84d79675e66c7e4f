"""
Stripe Webhook Endpoint.

Verifies the ``stripe-signature`` header, stores the raw event and hands it to
the ``WebhookProcessor``. Stripe retries any non-2xx reply, so handler
failures are reported as 500 after the error has been recorded.
"""

import json
from typing import Optional

import stripe
from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.billing import WebhookAck
from singr_backoffice.server.services.deps import BillingGatewayDep, SessionDep
from singr_backoffice.server.services.stripe_webhooks import WebhookProcessor

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "/stripe",
    response_model=WebhookAck,
    summary="Stripe Webhook",
    description="Receive a signed Stripe event and mirror it into the database.",
    response_description="Acknowledgement with the event type and id.",
    responses={
        400: {"description": "Missing or invalid signature"},
        500: {"description": "Webhook secret not configured or processing failed"},
    },
)
async def stripe_webhook(
    request: Request,
    session: SessionDep,
    gateway: BillingGatewayDep,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
):
    payload = await request.body()
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="No signature")
    if not gateway.webhook_secret:
        logger.error("Missing STRIPE_WEBHOOK_SECRET environment variable")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    try:
        gateway.construct_event(payload, stripe_signature)
        event = json.loads(payload)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Invalid signature") from e

    event_id, event_type = event.get("id"), event.get("type")
    logger.info(f"Stripe webhook received: {event_type} ({event_id})")

    processor = WebhookProcessor(session)
    await processor.record(event)
    try:
        await processor.process(event)
    except Exception as e:
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Webhook processing failed",
                "event_type": event_type,
                "event_id": event_id,
                "message": str(e) or "Unknown error",
            },
        )

    return WebhookAck(event_type=event_type, event_id=event_id)
