"""
API key repository.

Lookup by plaintext key is a bcrypt comparison against every usable key,
since only hashes are stored.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from singr_backoffice.core.security import verify_secret_async

from ..base import utc_now
from ..entities.api_keys import ApiKey, ApiKeyStatus
from .base import BaseRepository


class ApiKeyRepository(BaseRepository[ApiKey]):
    """Data access for API keys."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, ApiKey)

    async def list_for_customer(self, customer_id: str) -> List[ApiKey]:
        stmt = select(ApiKey).where(ApiKey.customer_id == customer_id).order_by(ApiKey.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_customer(self, key_id: str, customer_id: str) -> Optional[ApiKey]:
        api_key = await self.session.get(ApiKey, key_id)
        if api_key is None or api_key.customer_id != customer_id:
            return None
        return api_key

    async def count_active(self, customer_id: str) -> int:
        stmt = select(ApiKey.id).where(ApiKey.customer_id == customer_id, ApiKey.status == ApiKeyStatus.ACTIVE)
        result = await self.session.execute(stmt)
        return len(result.all())

    async def authenticate(self, plaintext: str) -> Optional[ApiKey]:
        """Find the active key matching ``plaintext`` and stamp ``last_used_at``.

        A key counts as usable while it is active and either has no
        ``revoked_at`` or a ``revoked_at`` still in the future.
        """
        now = utc_now()
        stmt = select(ApiKey).where(
            ApiKey.status == ApiKeyStatus.ACTIVE,
            or_(ApiKey.revoked_at.is_(None), ApiKey.revoked_at > now),
        )
        result = await self.session.execute(stmt)
        for candidate in result.scalars().all():
            if await verify_secret_async(plaintext, candidate.api_key_hash):
                candidate.last_used_at = now
                self.session.add(candidate)
                await self.session.flush()
                return candidate
        return None

    async def transition_status(self, customer_id: str, from_status: str, to_status: str) -> int:
        """Move every key of ``customer_id`` in ``from_status`` to ``to_status``.

        Returns:
            Number of keys updated
        """
        stmt = (
            update(ApiKey)
            .where(ApiKey.customer_id == customer_id, ApiKey.status == from_status)
            .values(status=to_status, updated_at=utc_now())
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
