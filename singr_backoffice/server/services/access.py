"""
Subscription-driven access control.

When a customer's subscription lapses their API keys are suspended and every
venue stops accepting requests; the serial is bumped so OpenKJ notices. When
it comes back, suspended keys are made active again. Venues are left closed
on reactivation: the customer reopens them from the dashboard.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from singr_backoffice.core.database.base import utc_now
from singr_backoffice.core.database.entities.api_keys import ApiKeyStatus
from singr_backoffice.core.database.entities.users import Customer
from singr_backoffice.core.database.entities.venues import Venue
from singr_backoffice.core.database.repositories import ApiKeyRepository, StateRepository
from singr_backoffice.core.logging_config import get_logger

logger = get_logger(__name__)


class AccessService:
    """Suspend or restore a customer's OpenKJ access."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.api_keys = ApiKeyRepository(session)
        self.state = StateRepository(session)

    async def _customer(self, stripe_customer_id: str) -> Optional[Customer]:
        stmt = select(Customer).where(Customer.stripe_customer_id == stripe_customer_id)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def sync(self, stripe_customer_id: str, suspend: bool) -> bool:
        """
        Apply a suspension or reactivation.

        Runs inside a savepoint: a failure is logged and rolled back without
        aborting the caller's transaction.

        Returns:
            True when access was updated, False when the customer is unknown
            or the update failed
        """
        customer = await self._customer(stripe_customer_id)
        if customer is None:
            logger.warning(f"Customer not found for Stripe ID: {stripe_customer_id}")
            return False

        try:
            async with self.session.begin_nested():
                if suspend:
                    await self._suspend(customer.id)
                else:
                    await self._reactivate(customer.id)
        except Exception as e:
            logger.error(f"Error updating access for customer {stripe_customer_id}: {e}", exc_info=True)
            return False

        logger.info(f"{'Suspended' if suspend else 'Reactivated'} access for customer {stripe_customer_id}")
        return True

    async def _suspend(self, user_id: str) -> None:
        keys = await self.api_keys.transition_status(user_id, ApiKeyStatus.ACTIVE, ApiKeyStatus.SUSPENDED)
        await self.session.execute(
            update(Venue)
            .where(Venue.user_id == user_id)
            .values(accepting_requests=False, updated_at=utc_now())
        )
        serial = await self.state.bump_serial(user_id)
        logger.debug(f"Suspended {keys} API key(s) for user {user_id}; serial is now {serial}")

    async def _reactivate(self, user_id: str) -> None:
        keys = await self.api_keys.transition_status(user_id, ApiKeyStatus.SUSPENDED, ApiKeyStatus.ACTIVE)
        logger.debug(f"Reactivated {keys} API key(s) for user {user_id}")
