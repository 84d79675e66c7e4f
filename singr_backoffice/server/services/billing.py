"""
Stripe billing gateway.

Every call the back office makes to Stripe goes through ``StripeGateway`` so
the API layer never touches the SDK directly and tests can swap in a fake.
The SDK is synchronous; calls are pushed to Starlette's threadpool.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from singr_backoffice.core.database.entities.billing import StripePrice, StripeProduct, Subscription
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.billing import PriceRead, ProductRead, SubscriptionRead
from singr_backoffice.server.core.config import settings

logger = get_logger(__name__)

ACTIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")
CATALOG_PAGE_SIZE = 100


class BillingGatewayError(Exception):
    """Raised when Stripe rejects a call or is not configured."""


def plan_label(nickname: Optional[str], recurring: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Human readable plan name for a price.

    The nickname wins; otherwise the label is derived from the recurring
    interval (``Monthly Plan``, ``Semi-Annual Plan``, ``Annual Plan``).
    """
    if nickname:
        return nickname
    interval = (recurring or {}).get("interval")
    if not interval:
        return None
    count = (recurring or {}).get("interval_count") or 1
    if interval == "month" and count == 1:
        return "Monthly Plan"
    if interval == "month" and count == 6:
        return "Semi-Annual Plan"
    if interval == "year":
        return "Annual Plan"
    return f"Singr Pro ({count} {interval}{'s' if count > 1 else ''})"


def subscription_read(subscription: Subscription, price: Optional[StripePrice]) -> SubscriptionRead:
    """Billing page view of a mirrored subscription."""
    read = SubscriptionRead.model_validate(subscription)
    if price is not None:
        read.plan_label = plan_label(price.nickname, price.recurring)
    return read


def price_read(price: StripePrice, product: Optional[StripeProduct]) -> PriceRead:
    read = PriceRead.model_validate(price)
    read.plan_label = plan_label(price.nickname, price.recurring)
    read.product = ProductRead.model_validate(product) if product is not None else None
    return read


def from_timestamp(value: Any) -> Optional[datetime]:
    """Convert Stripe epoch seconds to an aware UTC datetime; 0 and None mean absent."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class StripeGateway:
    """Async facade over the Stripe SDK."""

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.api_version = api_version

    def _request_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"api_key": self.api_key}
        if self.api_version:
            options["stripe_version"] = self.api_version
        return options

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **params: Any) -> Any:
        if not self.api_key:
            raise BillingGatewayError("Stripe is not configured")
        try:
            return await run_in_threadpool(func, *args, **params, **self._request_options())
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}")
            raise BillingGatewayError(getattr(e, "user_message", None) or str(e)) from e

    async def create_customer(self, email: str, name: Optional[str], user_id: str) -> str:
        """Create a Stripe customer and return its id."""
        customer = await self._call(
            "customer create",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"userId": user_id},
        )
        return customer.id

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        success_url: str,
        cancel_url: str,
        coupon_id: Optional[str] = None,
        upgrade_from: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Open a hosted subscription checkout for one price.

        Returns:
            ``id``, ``url``, ``payment_status``, ``mode``, ``amount_total``,
            ``currency``, ``expires_at`` and ``metadata`` of the session
        """
        params: Dict[str, Any] = {
            "customer": customer_id,
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "allow_promotion_codes": True,
            "billing_address_collection": "auto",
            "customer_update": {"address": "auto", "name": "auto"},
            "metadata": {"userId": user_id},
        }
        if coupon_id:
            params["discounts"] = [{"coupon": coupon_id}]
        if upgrade_from:
            params["subscription_data"] = {"metadata": {"upgrade_from": upgrade_from}}
        session = await self._call("checkout session create", stripe.checkout.Session.create, **params)
        return {
            "id": session.id,
            "url": getattr(session, "url", None),
            "payment_status": getattr(session, "payment_status", None) or "unpaid",
            "mode": getattr(session, "mode", None) or "subscription",
            "amount_total": getattr(session, "amount_total", None),
            "currency": getattr(session, "currency", None) or "usd",
            "expires_at": from_timestamp(getattr(session, "expires_at", None)),
            "metadata": {"userId": user_id},
        }

    async def modify_subscription(self, subscription_id: str, **params: Any) -> Dict[str, Any]:
        """Update a subscription and return its ``status``, ``cancel_at_period_end`` and ``cancel_at``."""
        subscription = await self._call("subscription update", stripe.Subscription.modify, subscription_id, **params)
        return {
            "id": subscription.id,
            "status": subscription.status,
            "cancel_at_period_end": bool(getattr(subscription, "cancel_at_period_end", False)),
            "cancel_at": from_timestamp(getattr(subscription, "cancel_at", None)),
        }

    async def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a billing portal session and return its URL."""
        portal = await self._call(
            "billing portal create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return portal.url

    async def has_active_subscription(self, customer_id: str) -> bool:
        """True when Stripe reports an active or trialing subscription for the customer."""
        for status in ACTIVE_SUBSCRIPTION_STATUSES:
            result = await self._call(
                "subscription list",
                stripe.Subscription.list,
                customer=customer_id,
                status=status,
                limit=1,
            )
            if result.data:
                return True
        return False

    async def list_active_products(self) -> List[Dict[str, Any]]:
        return await self._list_active("product list", stripe.Product.list)

    async def list_active_prices(self) -> List[Dict[str, Any]]:
        return await self._list_active("price list", stripe.Price.list)

    async def _list_active(self, operation: str, func: Callable[..., Any]) -> List[Dict[str, Any]]:
        """Collect every active object, following ``has_more`` page by page."""
        items: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {"active": True, "limit": CATALOG_PAGE_SIZE}
        while True:
            page = await self._call(operation, func, **params)
            items.extend(obj.to_dict() for obj in page.data)
            if not page.has_more or not page.data:
                return items
            params["starting_after"] = page.data[-1].id

    def construct_event(self, payload: bytes, signature: str) -> Any:
        """
        Verify a webhook signature.

        Raises:
            stripe.SignatureVerificationError: The signature does not match
            ValueError: The payload is not valid JSON
        """
        return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)


_billing_gateway: Optional[StripeGateway] = None


def get_billing_gateway() -> StripeGateway:
    global _billing_gateway
    if _billing_gateway is None:
        _billing_gateway = StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            api_version=settings.stripe_api_version,
        )
    return _billing_gateway
