"""
Venue repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.venues import SongRequest, Venue
from .base import BaseRepository


class VenueRepository(BaseRepository[Venue]):
    """Data access for venues scoped to their owner."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Venue)

    async def list_for_user(self, user_id: str) -> List[Venue]:
        """Venues owned by ``user_id`` in creation order.

        The position in this list (1-based) is the venue id exposed to OpenKJ.
        """
        stmt = select(Venue).where(Venue.user_id == user_id).order_by(Venue.created_at, Venue.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_user(self, venue_id: str, user_id: str) -> Optional[Venue]:
        venue = await self.session.get(Venue, venue_id)
        if venue is None or venue.user_id != user_id:
            return None
        return venue

    async def url_name_taken(self, user_id: str, url_name: str) -> bool:
        stmt = select(Venue.id).where(Venue.user_id == user_id, Venue.url_name == url_name)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def recent_requests_for_user(self, user_id: str, limit: int) -> List[Tuple[SongRequest, Venue]]:
        """Newest requests across all of the user's venues, each with its venue."""
        stmt = (
            select(SongRequest, Venue)
            .join(Venue, SongRequest.venue_id == Venue.id)
            .where(Venue.user_id == user_id)
            .order_by(SongRequest.request_time.desc(), SongRequest.request_id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(request, venue) for request, venue in result.all()]

    async def count_requests_for_user(self, user_id: str, since: Optional[datetime] = None) -> int:
        stmt = (
            select(func.count(SongRequest.request_id))
            .join(Venue, SongRequest.venue_id == Venue.id)
            .where(Venue.user_id == user_id)
        )
        if since is not None:
            stmt = stmt.where(SongRequest.request_time >= since)
        result = await self.session.execute(stmt)
        return result.scalar_one()
