"""
OpenKJ desktop API commands.

The desktop client posts ``{api_key, command, ...}`` and expects a flat JSON
reply echoing the command. Venues are addressed by their 1-based position in
the owner's venue list; a missing or unknown ``venue_id`` falls back to the
first venue.
"""

from __future__ import annotations

import json
from datetime import timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from singr_backoffice.core.database.entities.api_keys import ApiKey
from singr_backoffice.core.database.entities.systems import SongDb, System
from singr_backoffice.core.database.entities.venues import SongRequest, Venue
from singr_backoffice.core.database.repositories import StateRepository, VenueRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.openkj import OpenKJRequest, SongEntry
from singr_backoffice.core.validation import combine_song

logger = get_logger(__name__)

DEFAULT_SYSTEM_ID = 1

CommandHandler = Callable[[OpenKJRequest], Awaitable[Dict[str, Any]]]


class OpenKJCommandError(Exception):
    """A command failed; the message becomes the reply's ``errorString``."""

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


def parse_int(value: Any) -> Optional[int]:
    """Integers or numeric strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def parse_accepting(value: Any) -> Optional[bool]:
    """Booleans, or the strings ``"true"`` and ``"1"`` (any other string is False)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value in ("true", "1")
    return None


class OpenKJService:
    """Executes OpenKJ commands for the user owning ``api_key``."""

    def __init__(self, session: AsyncSession, api_key: ApiKey) -> None:
        self.session = session
        self.api_key = api_key
        self.user_id = api_key.customer_id
        self.state = StateRepository(session)
        self.venues = VenueRepository(session)
        self.commands: Dict[str, CommandHandler] = {
            "getSerial": self.get_serial,
            "getRequests": self.get_requests,
            "deleteRequest": self.delete_request,
            "setAccepting": self.set_accepting,
            "getVenues": self.get_venues,
            "clearRequests": self.clear_requests,
            "addSongs": self.add_songs,
            "clearDatabase": self.clear_database,
            "getAlert": self.get_alert,
            "getEntitledSystemCount": self.get_entitled_system_count,
            "connectionTest": self.connection_test,
        }

    async def execute(self, request: OpenKJRequest) -> Dict[str, Any]:
        """
        Run ``request.command``.

        Raises:
            OpenKJCommandError: Unknown command or a command-level failure
        """
        handler = self.commands.get(request.command)
        if handler is None:
            raise OpenKJCommandError("Unrecognized command")
        return await handler(request)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _system_id(request: OpenKJRequest) -> int:
        return parse_int(request.system_id) or DEFAULT_SYSTEM_ID

    async def _venue(self, request: OpenKJRequest) -> Venue:
        venues = await self.venues.list_for_user(self.user_id)
        if not venues:
            raise OpenKJCommandError("Venue not found")
        position = parse_int(request.venue_id)
        if position is not None and 1 <= position <= len(venues):
            return venues[position - 1]
        return venues[0]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def get_serial(self, request: OpenKJRequest) -> Dict[str, Any]:
        return {"serial": await self.state.get_serial(self.user_id)}

    async def get_requests(self, request: OpenKJRequest) -> Dict[str, Any]:
        venue = await self._venue(request)
        stmt = (
            select(SongRequest)
            .where(SongRequest.venue_id == venue.id, SongRequest.openkj_system_id == self._system_id(request))
            .order_by(SongRequest.request_time, SongRequest.request_id)
        )
        result = await self.session.execute(stmt)
        requests = [
            {
                "request_id": row.request_id,
                "artist": row.artist,
                "title": row.title,
                "singer": row.singer,
                "request_time": int(row.request_time.replace(tzinfo=timezone.utc).timestamp()),
                "key_change": row.key_change,
            }
            for row in result.scalars().all()
        ]
        return {"requests": requests, "serial": await self.state.get_serial(self.user_id)}

    async def delete_request(self, request: OpenKJRequest) -> Dict[str, Any]:
        request_id = parse_int(getattr(request, "request_id", None))
        if not request_id:
            raise OpenKJCommandError("venue_id and request_id are required")
        venue = await self._venue(request)
        result = await self.session.execute(
            delete(SongRequest).where(
                SongRequest.request_id == request_id,
                SongRequest.venue_id == venue.id,
                SongRequest.openkj_system_id == self._system_id(request),
            )
        )
        if not result.rowcount:
            raise OpenKJCommandError("Request not found")
        return {"serial": await self.state.bump_serial(self.user_id)}

    async def set_accepting(self, request: OpenKJRequest) -> Dict[str, Any]:
        accepting = parse_accepting(getattr(request, "accepting", None))
        if accepting is None:
            raise OpenKJCommandError("venue_id and accepting status are required")
        venue = await self._venue(request)
        venue.accepting_requests = accepting
        self.session.add(venue)
        serial = await self.state.bump_serial(self.user_id)
        return {"venue_id": request.venue_id, "accepting": accepting, "serial": serial}

    async def get_venues(self, request: OpenKJRequest) -> Dict[str, Any]:
        venues = await self.venues.list_for_user(self.user_id)
        return {
            "venues": [
                {
                    "venue_id": position,
                    "name": venue.name,
                    "url_name": venue.url_name,
                    "accepting": venue.accepting_requests,
                }
                for position, venue in enumerate(venues, start=1)
            ]
        }

    async def clear_requests(self, request: OpenKJRequest) -> Dict[str, Any]:
        venue = await self._venue(request)
        await self.session.execute(
            delete(SongRequest).where(
                SongRequest.venue_id == venue.id,
                SongRequest.openkj_system_id == self._system_id(request),
            )
        )
        return {"serial": await self.state.bump_serial(self.user_id)}

    async def add_songs(self, request: OpenKJRequest) -> Dict[str, Any]:
        songs = getattr(request, "songs", None)
        if not isinstance(songs, list) or not all(isinstance(song, dict) for song in songs):
            raise OpenKJCommandError(
                "Songs array is required",
                extra={"errors": [], "entries processed": 0, "last_artist": None, "last_title": None, "serial": 1},
            )

        system_id = self._system_id(request)
        errors: List[str] = []
        pending: Dict[str, SongDb] = {}
        last_artist: Optional[str] = None
        last_title: Optional[str] = None
        processed = 0

        for raw in songs:
            entry = SongEntry.model_validate(raw)
            artist = entry.artist.strip() if isinstance(entry.artist, str) else ""
            title = entry.title.strip() if isinstance(entry.title, str) else ""
            if not artist or not title:
                errors.append(f"Invalid song entry: {json.dumps(raw)}")
                continue
            combined, normalized = combine_song(artist, title)
            last_artist, last_title = artist, title
            processed += 1
            pending.setdefault(
                normalized,
                SongDb(
                    user_id=self.user_id,
                    openkj_system_id=system_id,
                    artist=artist,
                    title=title,
                    combined=combined,
                    normalized_combined=normalized,
                ),
            )

        if pending:
            existing = await self.session.execute(
                select(SongDb.normalized_combined).where(
                    SongDb.user_id == self.user_id,
                    SongDb.openkj_system_id == system_id,
                    SongDb.normalized_combined.in_(list(pending)),
                )
            )
            for normalized in existing.scalars().all():
                pending.pop(normalized, None)
            self.session.add_all(pending.values())
            await self.session.flush()

        return {
            "error": bool(errors),
            "errorString": "Some errors occurred during song addition" if errors else None,
            "errors": errors,
            "entries processed": processed,
            "last_artist": last_artist,
            "last_title": last_title,
            "serial": await self.state.get_serial(self.user_id),
        }

    async def clear_database(self, request: OpenKJRequest) -> Dict[str, Any]:
        await self.session.execute(
            delete(SongDb).where(SongDb.user_id == self.user_id, SongDb.openkj_system_id == self._system_id(request))
        )
        return {"serial": await self.state.get_serial(self.user_id)}

    async def get_alert(self, request: OpenKJRequest) -> Dict[str, Any]:
        return {"alert": False, "title": "", "message": ""}

    async def get_entitled_system_count(self, request: OpenKJRequest) -> Dict[str, Any]:
        result = await self.session.execute(select(func.count(System.id)).where(System.user_id == self.user_id))
        return {"count": max(result.scalar_one(), 1)}

    async def connection_test(self, request: OpenKJRequest) -> Dict[str, Any]:
        return {"connection": "ok"}
