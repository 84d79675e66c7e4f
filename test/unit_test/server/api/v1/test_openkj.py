from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlmodel import select

from singr_backoffice.core.database.entities.api_keys import ApiKey
from singr_backoffice.core.database.entities.systems import SongDb, State
from singr_backoffice.core.database.entities.venues import SongRequest, Venue
from singr_backoffice.server.services.api_keys import ApiKeyService

pytestmark = pytest.mark.asyncio

OPENKJ_URL = "/api/v1/openkj"


@pytest_asyncio.fixture
async def api_key(session, customer) -> str:
    issued = await ApiKeyService(session).issue(customer.id, "OpenKJ")
    await session.commit()
    return issued.api_key


@pytest_asyncio.fixture
async def venues(session, customer):
    first = Venue(user_id=customer.id, name="First", url_name="first", created_at=datetime.now(timezone.utc) - timedelta(days=1))
    second = Venue(user_id=customer.id, name="Second", url_name="second", accepting_requests=False)
    session.add_all([first, second])
    await session.commit()
    return first, second


async def command(client: AsyncClient, api_key: str, name: str, **arguments) -> dict:
    response = await client.post(OPENKJ_URL, json={"api_key": api_key, "command": name, **arguments})
    assert response.status_code == 200, response.text
    return response.json()


class TestEnvelope:
    async def test_invalid_api_key(self, client: AsyncClient, customer):
        reply = await command(client, "not-a-key", "getSerial")
        assert reply == {"command": "getSerial", "error": True, "errorString": "Invalid API key"}

    async def test_missing_fields(self, client: AsyncClient):
        reply = await command(client, "", "getSerial")
        assert reply == {"command": "getSerial", "error": True, "errorString": "Invalid request format"}

    async def test_malformed_json(self, client: AsyncClient):
        response = await client.post(OPENKJ_URL, content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 200
        assert response.json() == {"command": None, "error": True, "errorString": "Invalid request format"}

    async def test_unknown_command(self, client: AsyncClient, api_key):
        reply = await command(client, api_key, "launchRockets")
        assert reply == {"command": "launchRockets", "error": True, "errorString": "Unrecognized command"}

    async def test_suspended_key_is_rejected(self, client: AsyncClient, session, api_key):
        stored = (await session.execute(select(ApiKey))).scalars().one()
        stored.status = "suspended"
        await session.commit()

        reply = await command(client, api_key, "getSerial")

        assert reply["errorString"] == "Invalid API key"

    async def test_authentication_stamps_last_used(self, client: AsyncClient, session, api_key):
        await command(client, api_key, "connectionTest")

        stored = (await session.execute(select(ApiKey))).scalars().one()
        await session.refresh(stored)
        assert stored.last_used_at is not None

    async def test_rate_limited(self, client: AsyncClient, api_key, rate_limiter):
        rate_limiter.limit = 2
        await command(client, api_key, "getSerial")
        await command(client, api_key, "getSerial")

        response = await client.post(OPENKJ_URL, json={"api_key": api_key, "command": "getSerial"})

        assert response.status_code == 429
        assert response.json() == {"error": True, "errorString": "Rate limit exceeded"}

    async def test_unexpected_failure(self, client: AsyncClient, api_key, monkeypatch):
        from singr_backoffice.server.services.openkj import OpenKJService

        async def explode(self, request):
            raise RuntimeError("database went away")

        monkeypatch.setattr(OpenKJService, "get_serial", explode)
        response = await client.post(OPENKJ_URL, json={"api_key": api_key, "command": "getSerial"})

        assert response.status_code == 500
        assert response.json() == {"command": "unknown", "error": True, "errorString": "Internal server error"}


class TestSimpleCommands:
    async def test_get_serial(self, client: AsyncClient, api_key):
        assert await command(client, api_key, "getSerial") == {"command": "getSerial", "error": False, "serial": 1}

    async def test_connection_test(self, client: AsyncClient, api_key):
        reply = await command(client, api_key, "connectionTest")
        assert reply == {"command": "connectionTest", "error": False, "connection": "ok"}

    async def test_get_alert(self, client: AsyncClient, api_key):
        reply = await command(client, api_key, "getAlert")
        assert reply == {"command": "getAlert", "error": False, "alert": False, "title": "", "message": ""}

    async def test_entitled_system_count(self, client: AsyncClient, api_key):
        assert (await command(client, api_key, "getEntitledSystemCount"))["count"] == 1

    async def test_get_venues_by_position(self, client: AsyncClient, api_key, venues):
        reply = await command(client, api_key, "getVenues")
        assert reply["venues"] == [
            {"venue_id": 1, "name": "First", "url_name": "first", "accepting": True},
            {"venue_id": 2, "name": "Second", "url_name": "second", "accepting": False},
        ]

    async def test_venue_commands_without_venues(self, client: AsyncClient, api_key):
        reply = await command(client, api_key, "getRequests", venue_id=1)
        assert reply["errorString"] == "Venue not found"


class TestRequestQueue:
    async def test_get_requests_for_system(self, client: AsyncClient, session, api_key, venues):
        first, _ = venues
        session.add_all(
            [
                SongRequest(venue_id=first.id, artist="Queen", title="Bohemian Rhapsody", singer="Freddie"),
                SongRequest(venue_id=first.id, artist="ABBA", title="Waterloo", singer="Agnetha", openkj_system_id=2),
            ]
        )
        await session.commit()

        reply = await command(client, api_key, "getRequests", venue_id=1)

        assert [r["title"] for r in reply["requests"]] == ["Bohemian Rhapsody"]
        assert isinstance(reply["requests"][0]["request_time"], int)
        assert reply["serial"] == 1

        other_system = await command(client, api_key, "getRequests", venue_id=1, system_id=2)
        assert [r["title"] for r in other_system["requests"]] == ["Waterloo"]

    async def test_delete_request(self, client: AsyncClient, session, api_key, venues):
        first, _ = venues
        song_request = SongRequest(venue_id=first.id, artist="Queen", title="Bohemian Rhapsody", singer="Freddie")
        session.add(song_request)
        await session.commit()

        reply = await command(client, api_key, "deleteRequest", venue_id=1, request_id=song_request.request_id)
        missing = await command(client, api_key, "deleteRequest", venue_id=1, request_id=song_request.request_id)
        invalid = await command(client, api_key, "deleteRequest", venue_id=1)

        assert reply["serial"] == 2
        assert missing["errorString"] == "Request not found"
        assert invalid["errorString"] == "venue_id and request_id are required"

    async def test_clear_requests(self, client: AsyncClient, session, api_key, venues):
        first, second = venues
        session.add_all(
            [
                SongRequest(venue_id=first.id, artist="A", title="One", singer="S"),
                SongRequest(venue_id=second.id, artist="B", title="Two", singer="T"),
            ]
        )
        await session.commit()

        reply = await command(client, api_key, "clearRequests", venue_id=2)

        remaining = (await session.execute(select(SongRequest))).scalars().all()
        assert [r.title for r in remaining] == ["One"]
        assert reply["serial"] == 2

    @pytest.mark.parametrize("value,expected", [(True, True), ("true", True), ("1", True), ("no", False), (False, False)])
    async def test_set_accepting(self, client: AsyncClient, session, api_key, venues, value, expected):
        _, second = venues

        reply = await command(client, api_key, "setAccepting", venue_id=2, accepting=value)

        assert reply["accepting"] is expected
        assert reply["venue_id"] == 2
        await session.refresh(second)
        assert second.accepting_requests is expected
        assert (await session.get(State, second.user_id)).serial == 2

    async def test_set_accepting_requires_status(self, client: AsyncClient, api_key, venues):
        reply = await command(client, api_key, "setAccepting", venue_id=1)
        assert reply["errorString"] == "venue_id and accepting status are required"

    async def test_unknown_venue_position_uses_first_venue(self, client: AsyncClient, session, api_key, venues):
        first, _ = venues

        await command(client, api_key, "setAccepting", venue_id=9, accepting=False)

        await session.refresh(first)
        assert first.accepting_requests is False


class TestSongbook:
    async def test_add_songs(self, client: AsyncClient, session, api_key):
        songs = [
            {"artist": "Queen", "title": "Bohemian Rhapsody"},
            {"artist": "queen", "title": "bohemian rhapsody"},
            {"artist": "ABBA"},
            {"artist": " ABBA ", "title": " Waterloo "},
        ]

        reply = await command(client, api_key, "addSongs", songs=songs, system_id=1)

        assert reply["error"] is True
        assert reply["errors"] == ['Invalid song entry: {"artist": "ABBA"}']
        assert reply["entries processed"] == 3
        assert (reply["last_artist"], reply["last_title"]) == ("ABBA", "Waterloo")
        rows = (await session.execute(select(SongDb).order_by(SongDb.song_id))).scalars().all()
        assert [row.combined for row in rows] == ["Queen - Bohemian Rhapsody", "ABBA - Waterloo"]

    async def test_add_songs_skips_existing(self, client: AsyncClient, session, api_key):
        await command(client, api_key, "addSongs", songs=[{"artist": "Queen", "title": "Bohemian Rhapsody"}])

        reply = await command(client, api_key, "addSongs", songs=[{"artist": "QUEEN", "title": "BOHEMIAN RHAPSODY"}])

        assert reply["error"] is False
        assert len((await session.execute(select(SongDb))).scalars().all()) == 1

    async def test_add_songs_requires_array(self, client: AsyncClient, api_key):
        reply = await command(client, api_key, "addSongs", songs="Queen")
        assert reply["errorString"] == "Songs array is required"
        assert reply["entries processed"] == 0

    async def test_clear_database_only_touches_one_system(self, client: AsyncClient, session, api_key):
        await command(client, api_key, "addSongs", songs=[{"artist": "Queen", "title": "Bohemian Rhapsody"}])
        await command(client, api_key, "addSongs", songs=[{"artist": "ABBA", "title": "Waterloo"}], system_id=2)

        reply = await command(client, api_key, "clearDatabase", system_id=1)

        rows = (await session.execute(select(SongDb))).scalars().all()
        assert [row.title for row in rows] == ["Waterloo"]
        assert reply["serial"] == 1
