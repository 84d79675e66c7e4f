"""
Billing Endpoints.

Subscription management for the customer dashboard. Stripe is reached only
through the ``StripeGateway``; subscription rows are mirrors kept current by
the webhook endpoint and refreshed here after each change.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException
from sqlmodel import select

from singr_backoffice.core.database.entities.billing import StripeCheckoutSession, Subscription
from singr_backoffice.core.database.entities.users import Customer
from singr_backoffice.core.database.repositories import SubscriptionRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.billing import (
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    CheckoutSessionCreate,
    CheckoutSessionResponse,
    PortalSessionResponse,
    ReactivateSubscriptionRequest,
    ReactivateSubscriptionResponse,
    SubscriptionRead,
)
from singr_backoffice.server.core.config import settings
from singr_backoffice.server.services.billing import (
    ACTIVE_SUBSCRIPTION_STATUSES,
    BillingGatewayError,
    subscription_read,
)
from singr_backoffice.server.services.deps import BillingGatewayDep, CustomerUser, SessionDep

logger = get_logger(__name__)
router = APIRouter()


def billing_page_url() -> str:
    return f"{settings.app_base_url.rstrip('/')}/dashboard/billing"


def gateway_failure(action: str, error: BillingGatewayError) -> HTTPException:
    logger.error(f"Error {action}: {error}")
    return HTTPException(status_code=500, detail="Internal server error")


async def _customer(session: SessionDep, user_id: str) -> Customer:
    customer = await session.get(Customer, user_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


async def _owned_subscription(session: SessionDep, subscription_id: str, user_id: str) -> Subscription:
    subscription = await SubscriptionRepository(session).get_for_user(subscription_id, user_id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="Subscription not found")
    return subscription


@router.get(
    "/subscription",
    response_model=Optional[SubscriptionRead],
    summary="Get Subscription",
    description="The customer's most recent subscription with its plan label, or null.",
    response_description="Subscription or null.",
)
async def get_subscription(user: CustomerUser, session: SessionDep) -> Optional[SubscriptionRead]:
    latest = await SubscriptionRepository(session).latest_with_price(user.id)
    return subscription_read(*latest) if latest is not None else None


@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Create Checkout Session",
    description="Start a hosted Stripe checkout for a subscription price.",
    response_description="Checkout session id and redirect URL.",
    responses={404: {"description": "Customer not found"}},
)
async def create_checkout_session(
    payload: CheckoutSessionCreate, user: CustomerUser, session: SessionDep, gateway: BillingGatewayDep
) -> CheckoutSessionResponse:
    """
    Create a checkout session.

    When the customer already has an active or trialing subscription its id is
    passed along as ``upgrade_from`` so the webhook side can tell upgrades
    from first purchases.
    """
    customer = await _customer(session, user.id)
    result = await session.execute(
        select(Subscription.id)
        .where(Subscription.user_id == user.id, Subscription.status.in_(ACTIVE_SUBSCRIPTION_STATUSES))
        .order_by(Subscription.created_at.desc())
    )
    upgrade_from = result.scalars().first()

    try:
        checkout = await gateway.create_checkout_session(
            customer_id=customer.stripe_customer_id,
            price_id=payload.price_id,
            user_id=user.id,
            success_url=payload.success_url or f"{billing_page_url()}?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=payload.cancel_url or billing_page_url(),
            coupon_id=payload.coupon_id,
            upgrade_from=upgrade_from,
        )
    except BillingGatewayError as e:
        raise gateway_failure("creating checkout session", e) from e

    session.add(
        StripeCheckoutSession(
            id=checkout["id"],
            customer_id=customer.id,
            payment_status=checkout["payment_status"],
            mode=checkout["mode"],
            amount_total=checkout["amount_total"],
            currency=checkout["currency"],
            expires_at=checkout["expires_at"],
            url=checkout["url"],
            session_metadata=checkout["metadata"],
        )
    )
    await session.commit()

    logger.info(f"Checkout session created for user {user.id}: {checkout['id']}")
    return CheckoutSessionResponse(session_id=checkout["id"], url=checkout["url"])


@router.post(
    "/cancel-subscription",
    response_model=CancelSubscriptionResponse,
    summary="Cancel Subscription",
    description="Cancel at period end (default) or immediately with prorations.",
    response_description="The new cancellation settings.",
    responses={404: {"description": "Subscription not found"}},
)
async def cancel_subscription(
    payload: CancelSubscriptionRequest, user: CustomerUser, session: SessionDep, gateway: BillingGatewayDep
) -> CancelSubscriptionResponse:
    subscription = await _owned_subscription(session, payload.subscription_id, user.id)

    params = {"cancel_at_period_end": payload.cancel_at_period_end}
    if not payload.cancel_at_period_end:
        params["proration_behavior"] = "create_prorations"
    try:
        updated = await gateway.modify_subscription(subscription.id, **params)
    except BillingGatewayError as e:
        raise gateway_failure("canceling subscription", e) from e

    subscription.cancel_at_period_end = updated["cancel_at_period_end"]
    subscription.cancel_at = updated["cancel_at"]
    subscription.status = updated["status"]
    session.add(subscription)
    await session.commit()

    logger.info(f"Subscription {subscription.id} cancel settings updated for user {user.id}")
    return CancelSubscriptionResponse(
        cancel_at_period_end=updated["cancel_at_period_end"], cancel_at=updated["cancel_at"]
    )


@router.post(
    "/reactivate-subscription",
    response_model=ReactivateSubscriptionResponse,
    summary="Reactivate Subscription",
    description="Undo a pending cancellation at period end.",
    response_description="Success flag.",
    responses={404: {"description": "Subscription not found"}},
)
async def reactivate_subscription(
    payload: ReactivateSubscriptionRequest, user: CustomerUser, session: SessionDep, gateway: BillingGatewayDep
) -> ReactivateSubscriptionResponse:
    subscription = await _owned_subscription(session, payload.subscription_id, user.id)
    try:
        updated = await gateway.modify_subscription(subscription.id, cancel_at_period_end=False)
    except BillingGatewayError as e:
        raise gateway_failure("reactivating subscription", e) from e

    subscription.cancel_at_period_end = False
    subscription.cancel_at = None
    subscription.status = updated["status"]
    session.add(subscription)
    await session.commit()

    logger.info(f"Subscription {subscription.id} reactivated for user {user.id}")
    return ReactivateSubscriptionResponse()


@router.post(
    "/customer-portal",
    response_model=PortalSessionResponse,
    summary="Open Customer Portal",
    description="Create a Stripe billing portal session returning to the billing page.",
    response_description="Portal URL.",
    responses={404: {"description": "Customer not found"}},
)
async def customer_portal(user: CustomerUser, session: SessionDep, gateway: BillingGatewayDep) -> PortalSessionResponse:
    customer = await _customer(session, user.id)
    try:
        url = await gateway.create_portal_session(customer.stripe_customer_id, billing_page_url())
    except BillingGatewayError as e:
        raise gateway_failure("creating customer portal session", e) from e

    logger.info(f"Customer portal session created for user {user.id}")
    return PortalSessionResponse(url=url)
