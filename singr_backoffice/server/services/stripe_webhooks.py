"""
Stripe webhook processing.

Verified events are logged to ``stripe_webhook_events`` and dispatched by
type through a handler table. Handlers mirror Stripe objects into local
tables and drive API key / venue access through ``AccessService``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from singr_backoffice.core.database.base import utc_now
from singr_backoffice.core.database.entities.billing import (
    StripeCheckoutSession,
    StripePrice,
    StripeProduct,
    StripeWebhookEvent,
    Subscription,
)
from singr_backoffice.core.database.entities.users import Customer
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.monitoring import log_webhook_event

from .access import AccessService
from .billing import ACTIVE_SUBSCRIPTION_STATUSES, from_timestamp

logger = get_logger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


def extract_customer_id(customer: Any) -> Optional[str]:
    """Stripe sends ``customer`` either as an id or an expanded object."""
    if not customer:
        return None
    if isinstance(customer, dict):
        return customer.get("id")
    return str(customer)


def subscription_periods(subscription: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Optional[datetime]]:
    """
    Resolve the period and lifecycle dates of a Stripe subscription.

    Trialing subscriptions may lack ``current_period_*``; the start falls back
    to ``trial_start`` then ``created`` then now, and the end falls back to
    ``trial_end`` then a week from now.
    """
    now = now or utc_now()
    trial_start = from_timestamp(subscription.get("trial_start"))
    trial_end = from_timestamp(subscription.get("trial_end"))
    created = from_timestamp(subscription.get("created"))
    start = from_timestamp(subscription.get("current_period_start")) or trial_start or created or now
    end = from_timestamp(subscription.get("current_period_end")) or trial_end or now + timedelta(days=7)
    return {
        "current_period_start": start,
        "current_period_end": end,
        "trial_start": trial_start,
        "trial_end": trial_end,
        "created": created,
        "cancel_at": from_timestamp(subscription.get("cancel_at")),
        "canceled_at": from_timestamp(subscription.get("canceled_at")),
    }


def first_price_id(subscription: Dict[str, Any]) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    price = items[0].get("price")
    if isinstance(price, dict):
        return price.get("id")
    return price


class WebhookProcessor:
    """Stores and dispatches one verified Stripe event."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.access = AccessService(session)
        self.handlers: Dict[str, Handler] = {
            "product.created": self.handle_product,
            "product.updated": self.handle_product,
            "price.created": self.handle_price,
            "price.updated": self.handle_price,
            "customer.created": self.handle_customer,
            "customer.updated": self.handle_customer,
            "checkout.session.completed": self.handle_checkout_completed,
            "checkout.session.expired": self.handle_checkout_expired,
            "checkout.session.async_payment_succeeded": self.handle_checkout_async_succeeded,
            "checkout.session.async_payment_failed": self.handle_checkout_async_failed,
            "customer.subscription.created": self.handle_subscription_created,
            "customer.subscription.updated": self.handle_subscription_updated,
            "customer.subscription.deleted": self.handle_subscription_deleted,
            "customer.subscription.paused": self.handle_subscription_paused,
            "customer.subscription.resumed": self.handle_subscription_resumed,
            "invoice.payment_failed": self.handle_invoice_failed,
            "invoice.payment_succeeded": self.handle_invoice_succeeded,
        }

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    async def record(self, event: Dict[str, Any]) -> None:
        """Insert and commit the raw event; failures are logged and processing continues."""
        try:
            async with self.session.begin_nested():
                self.session.add(
                    StripeWebhookEvent(
                        event_id=event["id"],
                        event_type=event["type"],
                        livemode=bool(event.get("livemode")),
                        api_version=event.get("api_version"),
                        payload=event,
                        processed=False,
                    )
                )
            await self.session.commit()
        except Exception as e:
            logger.warning(f"Failed to log webhook event {event.get('id')} (continuing processing): {e}")

    async def _mark(self, event_id: str, **values: Any) -> None:
        await self.session.execute(
            update(StripeWebhookEvent).where(StripeWebhookEvent.event_id == event_id).values(**values)
        )

    async def process(self, event: Dict[str, Any]) -> None:
        """
        Dispatch ``event`` and record the outcome.

        Raises:
            Exception: Whatever the handler raised, after ``error_message``
                has been stored
        """
        event_id, event_type = event["id"], event["type"]
        handler = self.handlers.get(event_type)
        try:
            if handler is None:
                logger.info(f"Webhook event logged (no processing needed): {event_type}")
            else:
                await handler(event["data"]["object"])
        except Exception as e:
            logger.error(f"Error processing webhook {event_type}: {e}", exc_info=True)
            await self.session.rollback()
            await self._mark(event_id, processed=False, error_message=str(e) or type(e).__name__)
            await self.session.commit()
            log_webhook_event(event_id, event_type, processed=False, error=str(e))
            raise

        await self._mark(event_id, processed=True, processed_at=utc_now())
        await self.session.commit()
        log_webhook_event(event_id, event_type, processed=True)
        logger.info(f"Successfully processed webhook: {event_type} ({event_id})")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _customer(self, stripe_customer_id: str) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.stripe_customer_id == stripe_customer_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def _upsert_subscription(self, subscription: Dict[str, Any], customer: Customer) -> Subscription:
        periods = subscription_periods(subscription)
        row = await self.session.get(Subscription, subscription["id"])
        if row is None:
            row = Subscription(
                id=subscription["id"],
                user_id=customer.id,
                customer=customer.stripe_customer_id,
                status=subscription["status"],
                current_period_start=periods["current_period_start"],
                current_period_end=periods["current_period_end"],
                created_at=periods["created"] or utc_now(),
                livemode=bool(subscription.get("livemode")),
            )
        row.status = subscription["status"]
        row.price_id = first_price_id(subscription) or row.price_id
        row.current_period_start = periods["current_period_start"]
        row.current_period_end = periods["current_period_end"]
        row.cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
        row.cancel_at = periods["cancel_at"]
        row.canceled_at = periods["canceled_at"]
        row.trial_start = periods["trial_start"]
        row.trial_end = periods["trial_end"]
        row.data = subscription
        self.session.add(row)
        await self.session.flush()
        return row

    async def _set_subscription_status(self, subscription: Dict[str, Any], status: str, **values: Any) -> None:
        await self.session.execute(
            update(Subscription)
            .where(Subscription.id == subscription["id"])
            .values(status=status, data=subscription, updated_at=utc_now(), **values)
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def handle_product(self, product: Dict[str, Any]) -> None:
        row = await self.session.get(StripeProduct, product["id"])
        if row is None:
            row = StripeProduct(id=product["id"], name=product.get("name") or product["id"])
        row.active = bool(product.get("active", True))
        row.name = product.get("name") or row.name
        row.description = product.get("description")
        row.data = product
        self.session.add(row)
        await self.session.flush()
        logger.info(f"Product upserted: {row.name} ({row.id})")

    async def handle_price(self, price: Dict[str, Any]) -> None:
        product = price.get("product")
        product_id = product.get("id") if isinstance(product, dict) else product
        if await self.session.get(StripeProduct, product_id) is None:
            # Price events can arrive before their product event.
            self.session.add(StripeProduct(id=product_id, name=product_id, active=True))
            await self.session.flush()

        row = await self.session.get(StripePrice, price["id"])
        if row is None:
            row = StripePrice(id=price["id"], product_id=product_id, currency=price.get("currency") or "usd")
        row.active = bool(price.get("active", True))
        row.currency = price.get("currency") or row.currency
        row.nickname = price.get("nickname")
        row.type = price.get("type") or row.type
        row.unit_amount = price.get("unit_amount")
        row.lookup_key = price.get("lookup_key")
        row.recurring = price.get("recurring")
        row.data = price
        self.session.add(row)
        await self.session.flush()
        logger.info(f"Price upserted: {row.nickname or row.id}")

    async def handle_customer(self, customer: Dict[str, Any]) -> None:
        logger.info(f"Customer event received for {customer.get('id')}; customer rows are owned by signup")

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def handle_checkout_completed(self, checkout: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(checkout.get("customer"))
        customer = await self._customer(stripe_customer_id) if stripe_customer_id else None
        if customer is not None:
            row = await self.session.get(StripeCheckoutSession, checkout["id"])
            if row is None:
                row = StripeCheckoutSession(
                    id=checkout["id"],
                    customer_id=customer.id,
                    mode=checkout.get("mode") or "subscription",
                    amount_total=checkout.get("amount_total"),
                    currency=checkout.get("currency") or "usd",
                    expires_at=from_timestamp(checkout.get("expires_at")),
                    url=checkout.get("url"),
                )
            row.payment_status = checkout.get("payment_status") or row.payment_status
            row.completed_at = utc_now()
            row.session_metadata = checkout.get("metadata")
            self.session.add(row)
            await self.session.flush()
            if checkout.get("payment_status") == "paid" and checkout.get("mode") == "subscription":
                await self.access.sync(stripe_customer_id, suspend=False)
        logger.info(f"Checkout session completed: {checkout['id']}")

    async def _update_checkout(self, checkout: Dict[str, Any], **values: Any) -> Optional[str]:
        stripe_customer_id = extract_customer_id(checkout.get("customer"))
        if not stripe_customer_id or await self._customer(stripe_customer_id) is None:
            return None
        await self.session.execute(
            update(StripeCheckoutSession)
            .where(StripeCheckoutSession.id == checkout["id"])
            .values(session_metadata=checkout.get("metadata"), updated_at=utc_now(), **values)
        )
        return stripe_customer_id

    async def handle_checkout_expired(self, checkout: Dict[str, Any]) -> None:
        await self._update_checkout(checkout, payment_status="expired")
        logger.info(f"Checkout session expired: {checkout['id']}")

    async def handle_checkout_async_succeeded(self, checkout: Dict[str, Any]) -> None:
        stripe_customer_id = await self._update_checkout(
            checkout, payment_status=checkout.get("payment_status"), completed_at=utc_now()
        )
        if stripe_customer_id:
            await self.access.sync(stripe_customer_id, suspend=False)
        logger.info(f"Checkout session async payment succeeded: {checkout['id']}")

    async def handle_checkout_async_failed(self, checkout: Dict[str, Any]) -> None:
        stripe_customer_id = await self._update_checkout(checkout, payment_status=checkout.get("payment_status"))
        if stripe_customer_id:
            await self.access.sync(stripe_customer_id, suspend=True)
        logger.info(f"Checkout session async payment failed: {checkout['id']}")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def handle_subscription_created(self, subscription: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(subscription.get("customer"))
        customer = await self._customer(stripe_customer_id) if stripe_customer_id else None
        if customer is not None:
            await self._upsert_subscription(subscription, customer)
            if subscription["status"] in ACTIVE_SUBSCRIPTION_STATUSES:
                await self.access.sync(stripe_customer_id, suspend=False)
        logger.info(f"Subscription created: {subscription['id']} ({subscription['status']})")

    async def handle_subscription_updated(self, subscription: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(subscription.get("customer"))
        customer = await self._customer(stripe_customer_id) if stripe_customer_id else None
        if customer is not None:
            await self._upsert_subscription(subscription, customer)
            suspend = subscription["status"] not in ACTIVE_SUBSCRIPTION_STATUSES
            await self.access.sync(stripe_customer_id, suspend=suspend)
        logger.info(f"Subscription updated: {subscription['id']} ({subscription['status']})")

    async def handle_subscription_deleted(self, subscription: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(subscription.get("customer"))
        if stripe_customer_id:
            await self._set_subscription_status(subscription, "canceled", canceled_at=utc_now())
            await self.access.sync(stripe_customer_id, suspend=True)
        logger.info(f"Subscription deleted: {subscription['id']}")

    async def handle_subscription_paused(self, subscription: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(subscription.get("customer"))
        if stripe_customer_id:
            await self._set_subscription_status(subscription, "paused")
            await self.access.sync(stripe_customer_id, suspend=True)
        logger.info(f"Subscription paused: {subscription['id']}")

    async def handle_subscription_resumed(self, subscription: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(subscription.get("customer"))
        if stripe_customer_id:
            await self._set_subscription_status(subscription, subscription["status"])
            if subscription["status"] in ACTIVE_SUBSCRIPTION_STATUSES:
                await self.access.sync(stripe_customer_id, suspend=False)
        logger.info(f"Subscription resumed: {subscription['id']} ({subscription['status']})")

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def handle_invoice_failed(self, invoice: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(invoice.get("customer"))
        if stripe_customer_id and invoice.get("billing_reason") == "subscription_cycle":
            await self.access.sync(stripe_customer_id, suspend=True)
        logger.info(f"Invoice payment failed: {invoice.get('id')} for customer {stripe_customer_id}")

    async def handle_invoice_succeeded(self, invoice: Dict[str, Any]) -> None:
        stripe_customer_id = extract_customer_id(invoice.get("customer"))
        if stripe_customer_id and invoice.get("billing_reason") == "subscription_cycle":
            await self.access.sync(stripe_customer_id, suspend=False)
        logger.info(f"Invoice payment succeeded: {invoice.get('id')} for customer {stripe_customer_id}")
