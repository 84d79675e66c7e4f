"""
Billing repositories for mirrored Stripe subscriptions and prices.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.billing import StripePrice, StripeProduct, Subscription
from .base import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """Data access for subscriptions scoped to their owner."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Subscription)

    async def get_for_user(self, subscription_id: str, user_id: str) -> Optional[Subscription]:
        subscription = await self.session.get(Subscription, subscription_id)
        if subscription is None or subscription.user_id != user_id:
            return None
        return subscription

    async def latest_with_price(self, user_id: str) -> Optional[Tuple[Subscription, Optional[StripePrice]]]:
        """The most recently created subscription of ``user_id`` and its price, if mirrored."""
        stmt = (
            select(Subscription, StripePrice)
            .join(StripePrice, StripePrice.id == Subscription.price_id, isouter=True)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]


class PriceRepository(BaseRepository[StripePrice]):
    """Data access for mirrored prices and their products."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, StripePrice)

    async def get_with_product(self, price_id: str) -> Optional[Tuple[StripePrice, Optional[StripeProduct]]]:
        stmt = (
            select(StripePrice, StripeProduct)
            .join(StripeProduct, StripeProduct.id == StripePrice.product_id, isouter=True)
            .where(StripePrice.id == price_id)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_active_with_products(self) -> List[Tuple[StripePrice, Optional[StripeProduct]]]:
        """Active prices of active products, cheapest first."""
        stmt = (
            select(StripePrice, StripeProduct)
            .join(StripeProduct, StripeProduct.id == StripePrice.product_id, isouter=True)
            .where(StripePrice.active.is_(True))
            .order_by(StripePrice.unit_amount)
        )
        result = await self.session.execute(stmt)
        return [(price, product) for price, product in result.all() if product is None or product.active]
