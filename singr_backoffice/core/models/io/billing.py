"""
Billing I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from singr_backoffice.core.validation import is_valid_url


class CheckoutSessionCreate(BaseModel):
    """Schema for starting a hosted Stripe checkout."""

    price_id: str
    coupon_id: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None

    @field_validator("price_id")
    @classmethod
    def check_price_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Price ID is required")
        return value

    @field_validator("success_url", "cancel_url")
    @classmethod
    def check_redirect_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_url(value):
            raise ValueError("Invalid URL")
        return value


class CheckoutSessionResponse(BaseModel):
    session_id: str
    url: Optional[str] = None


class CancelSubscriptionRequest(BaseModel):
    subscription_id: str
    cancel_at_period_end: bool = True


class CancelSubscriptionResponse(BaseModel):
    success: bool = True
    cancel_at_period_end: bool
    cancel_at: Optional[datetime] = None


class ReactivateSubscriptionRequest(BaseModel):
    subscription_id: str


class ReactivateSubscriptionResponse(BaseModel):
    success: bool = True
    cancel_at_period_end: bool = False


class PortalSessionResponse(BaseModel):
    url: str


class ProductRead(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    active: bool

    class Config:
        from_attributes = True


class PriceRead(BaseModel):
    """A Stripe price with its product and a human plan label."""

    id: str
    currency: str
    unit_amount: Optional[int] = None
    nickname: Optional[str] = None
    type: str
    active: bool
    recurring: Optional[dict[str, Any]] = None
    plan_label: Optional[str] = None
    product: Optional[ProductRead] = None

    class Config:
        from_attributes = True


class SubscriptionRead(BaseModel):
    """The customer's current subscription as shown on the billing page."""

    id: str
    status: str
    price_id: Optional[str] = None
    plan_label: Optional[str] = None
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    cancel_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    trial_end: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookAck(BaseModel):
    received: bool = True
    event_type: str
    event_id: str = Field(description="Stripe event id")
