"""
Admin activity feed.

Merges the newest venues, singer requests, API keys and songbook rows of all
accounts into one timeline, newest first.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from singr_backoffice.core.database.entities.api_keys import ApiKey
from singr_backoffice.core.database.entities.systems import SongDb
from singr_backoffice.core.database.entities.users import User
from singr_backoffice.core.database.entities.venues import SongRequest, Venue
from singr_backoffice.core.models.io.admin import ActivityItem

VENUE_LIMIT = 20
REQUEST_LIMIT = 40
API_KEY_LIMIT = 20
SONG_LIMIT = 30
FEED_LIMIT = 80


def _account(user: Optional[User]) -> Optional[str]:
    if user is None:
        return None
    return user.name or user.email


def _song_label(artist: str, title: str) -> str:
    return f"{artist} - {title}"


class ActivityFeed:
    """Read-only view over recent changes across every account."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def recent(self) -> List[ActivityItem]:
        items = await self._venues() + await self._requests() + await self._api_keys() + await self._songs()
        items.sort(key=lambda item: item.timestamp, reverse=True)
        return items[:FEED_LIMIT]

    async def _venues(self) -> List[ActivityItem]:
        result = await self.session.execute(
            select(Venue, User)
            .join(User, Venue.user_id == User.id)
            .order_by(Venue.created_at.desc())
            .limit(VENUE_LIMIT)
        )
        return [
            ActivityItem(
                id=f"venue-{venue.id}",
                type="Venue created",
                detail=venue.name,
                account=_account(user),
                timestamp=venue.created_at,
            )
            for venue, user in result.all()
        ]

    async def _requests(self) -> List[ActivityItem]:
        result = await self.session.execute(
            select(SongRequest, Venue, User)
            .join(Venue, SongRequest.venue_id == Venue.id)
            .join(User, Venue.user_id == User.id)
            .order_by(SongRequest.request_time.desc(), SongRequest.request_id.desc())
            .limit(REQUEST_LIMIT)
        )
        return [
            ActivityItem(
                id=f"request-{request.request_id}",
                type="Song request",
                detail=_song_label(request.artist, request.title),
                account=_account(user),
                meta=venue.name,
                timestamp=request.request_time,
            )
            for request, venue, user in result.all()
        ]

    async def _api_keys(self) -> List[ActivityItem]:
        # Customer.id is the user's id.
        result = await self.session.execute(
            select(ApiKey, User)
            .join(User, ApiKey.customer_id == User.id)
            .order_by(ApiKey.created_at.desc())
            .limit(API_KEY_LIMIT)
        )
        return [
            ActivityItem(
                id=f"apikey-{key.id}",
                type="API key",
                detail=key.description or key.id,
                account=_account(user),
                meta=key.status,
                timestamp=key.created_at,
            )
            for key, user in result.all()
        ]

    async def _songs(self) -> List[ActivityItem]:
        result = await self.session.execute(
            select(SongDb, User)
            .join(User, SongDb.user_id == User.id)
            .order_by(SongDb.created_at.desc())
            .limit(SONG_LIMIT)
        )
        return [
            ActivityItem(
                id=f"song-{song.song_id}",
                type="Catalog update",
                detail=_song_label(song.artist, song.title),
                account=_account(user),
                meta=f"System {song.openkj_system_id}",
                timestamp=song.created_at,
            )
            for song, user in result.all()
        ]
