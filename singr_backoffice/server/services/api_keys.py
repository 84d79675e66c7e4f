"""
API key issuance.

Shared by the customer dashboard and the admin console. The plaintext key
only ever leaves this module inside the returned ``ApiKeyIssued``.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from singr_backoffice.core.database.base import utc_now
from singr_backoffice.core.database.entities.api_keys import ApiKey, ApiKeyStatus
from singr_backoffice.core.database.entities.users import Customer
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.api_keys import ApiKeyIssued
from singr_backoffice.core.security import generate_api_key, hash_secret_async

logger = get_logger(__name__)


def placeholder_stripe_id(user_id: str) -> str:
    """Stripe id stored for customers created before their Stripe customer exists."""
    return f"temp_{user_id}"


class ApiKeyService:
    """Issue, roll and revoke API keys."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def ensure_customer(self, user_id: str) -> Customer:
        customer = await self.session.get(Customer, user_id)
        if customer is None:
            customer = Customer(id=user_id, stripe_customer_id=placeholder_stripe_id(user_id))
            self.session.add(customer)
            await self.session.flush()
        return customer

    async def issue(self, user_id: str, description: str) -> ApiKeyIssued:
        """Create an active key for ``user_id``, creating the Customer row if needed."""
        customer = await self.ensure_customer(user_id)
        plaintext = generate_api_key()
        api_key = ApiKey(
            customer_id=customer.id,
            description=description,
            api_key_hash=await hash_secret_async(plaintext),
            status=ApiKeyStatus.ACTIVE.value,
        )
        self.session.add(api_key)
        await self.session.flush()
        logger.info(f"API key created for user {user_id}: {api_key.id}")
        return self._issued(api_key, plaintext)

    async def roll(self, api_key: ApiKey) -> ApiKeyIssued:
        """Replace the key's secret and reactivate it. Revoked keys must be rejected by the caller."""
        plaintext = generate_api_key()
        api_key.api_key_hash = await hash_secret_async(plaintext)
        api_key.status = ApiKeyStatus.ACTIVE.value
        api_key.updated_at = utc_now()
        self.session.add(api_key)
        await self.session.flush()
        logger.info(f"API key {api_key.id} rolled")
        return self._issued(api_key, plaintext)

    async def revoke(self, api_key: ApiKey) -> None:
        """Revoke ``api_key``; the first revocation time is kept on repeat calls."""
        api_key.status = ApiKeyStatus.REVOKED.value
        if api_key.revoked_at is None:
            api_key.revoked_at = utc_now()
        self.session.add(api_key)
        await self.session.flush()
        logger.info(f"API key {api_key.id} revoked")

    @staticmethod
    def _issued(api_key: ApiKey, plaintext: str) -> ApiKeyIssued:
        return ApiKeyIssued(
            id=api_key.id,
            api_key=plaintext,
            description=api_key.description,
            status=api_key.status,
            created_at=api_key.created_at,
        )
