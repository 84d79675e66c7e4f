"""
Stripe billing entity models.

These tables mirror Stripe objects received through webhooks and API calls:
products, prices, subscriptions, checkout sessions and the raw webhook event
log. The full Stripe payload is kept in ``data`` for later inspection.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, UTCDateTime, utc_now


class StripeProduct(Base, table=True):
    """Mirror of a Stripe product.

    Table: stripe_products
    """

    __tablename__ = "stripe_products"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(primary_key=True, max_length=255)
    active: bool = Field(default=True)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None)
    data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"StripeProduct(id={self.id}, name={self.name})"


class StripePrice(Base, table=True):
    """Mirror of a Stripe price.

    Table: stripe_prices
    """

    __tablename__ = "stripe_prices"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(primary_key=True, max_length=255)
    product_id: str = Field(foreign_key="stripe_products.id", index=True, max_length=255)
    active: bool = Field(default=True)
    currency: str = Field(max_length=8)
    nickname: Optional[str] = Field(default=None, max_length=255)
    type: str = Field(default="recurring", max_length=32)
    unit_amount: Optional[int] = Field(default=None)
    lookup_key: Optional[str] = Field(default=None, max_length=255)
    recurring: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"StripePrice(id={self.id}, product_id={self.product_id}, unit_amount={self.unit_amount})"


class Subscription(Base, table=True):
    """Mirror of a Stripe subscription, linked to the owning user.

    Table: subscriptions
    """

    __tablename__ = "subscriptions"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(primary_key=True, max_length=255)
    user_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    customer: str = Field(index=True, max_length=255, description="Stripe customer id")
    status: str = Field(max_length=32)
    price_id: Optional[str] = Field(default=None, max_length=255)
    current_period_start: datetime = Field(sa_type=UTCDateTime)
    current_period_end: datetime = Field(sa_type=UTCDateTime)
    cancel_at_period_end: bool = Field(default=False)
    cancel_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    canceled_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    trial_start: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    trial_end: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    livemode: bool = Field(default=False)
    data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, user_id={self.user_id}, status={self.status})"


class StripeCheckoutSession(Base, table=True):
    """Hosted checkout session created for a customer.

    Table: stripe_checkout_sessions
    """

    __tablename__ = "stripe_checkout_sessions"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(primary_key=True, max_length=255)
    customer_id: str = Field(foreign_key="customers.id", index=True, max_length=36)
    payment_status: str = Field(default="unpaid", max_length=32)
    mode: str = Field(default="subscription", max_length=32)
    amount_total: Optional[int] = Field(default=None)
    currency: Optional[str] = Field(default=None, max_length=8)
    expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    url: Optional[str] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    session_metadata: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"StripeCheckoutSession(id={self.id}, payment_status={self.payment_status})"


class StripeWebhookEvent(Base, table=True):
    """Raw log of every Stripe webhook delivery.

    Table: stripe_webhook_events
    """

    __tablename__ = "stripe_webhook_events"
    __table_args__ = ({"extend_existing": True},)

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: str = Field(unique=True, index=True, max_length=255)
    event_type: str = Field(index=True, max_length=255)
    livemode: bool = Field(default=False)
    api_version: Optional[str] = Field(default=None, max_length=64)
    payload: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    received_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    processed: bool = Field(default=False)
    processed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    error_message: Optional[str] = Field(default=None)

    def __repr__(self) -> str:
        return f"StripeWebhookEvent(event_id={self.event_id}, type={self.event_type}, processed={self.processed})"
