"""Unit tests for the API key repository."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from singr_backoffice.core import security
from singr_backoffice.core.database.entities.api_keys import ApiKey, ApiKeyStatus
from singr_backoffice.core.database.repositories import ApiKeyRepository
from singr_backoffice.core.security import hash_secret

PLAINTEXT = "a" * 64


@pytest.fixture
async def make_key(in_memory_session):
    async def _make(customer_id: str, plaintext: str = PLAINTEXT, **fields) -> ApiKey:
        api_key = ApiKey(customer_id=customer_id, api_key_hash=hash_secret(plaintext, rounds=4), **fields)
        in_memory_session.add(api_key)
        await in_memory_session.flush()
        return api_key

    return _make


class TestAuthenticate:
    async def test_matches_active_key_and_stamps_usage(self, in_memory_session, owner, make_key):
        api_key = await make_key(owner.id)

        found = await ApiKeyRepository(in_memory_session).authenticate(PLAINTEXT)

        assert found is api_key
        assert found.last_used_at is not None

    async def test_wrong_key(self, in_memory_session, owner, make_key):
        await make_key(owner.id)

        assert await ApiKeyRepository(in_memory_session).authenticate("b" * 64) is None

    @pytest.mark.parametrize("status", [ApiKeyStatus.SUSPENDED.value, ApiKeyStatus.REVOKED.value])
    async def test_inactive_keys_are_rejected(self, in_memory_session, owner, make_key, status):
        await make_key(owner.id, status=status)

        assert await ApiKeyRepository(in_memory_session).authenticate(PLAINTEXT) is None

    async def test_past_revocation_time_is_rejected(self, in_memory_session, owner, make_key):
        await make_key(owner.id, revoked_at=datetime.now(timezone.utc) - timedelta(minutes=1))

        assert await ApiKeyRepository(in_memory_session).authenticate(PLAINTEXT) is None

    async def test_future_revocation_time_still_works(self, in_memory_session, owner, make_key):
        api_key = await make_key(owner.id, revoked_at=datetime.now(timezone.utc) + timedelta(days=1))

        assert await ApiKeyRepository(in_memory_session).authenticate(PLAINTEXT) is api_key

    async def test_bcrypt_checks_do_not_block_the_event_loop(self, in_memory_session, owner, make_key, monkeypatch):
        await make_key(owner.id)

        def slow_verify(secret, hashed):
            time.sleep(0.3)
            return False

        monkeypatch.setattr(security, "verify_secret", slow_verify)
        gaps = []

        async def ticker():
            last = time.perf_counter()
            for _ in range(40):
                await asyncio.sleep(0.005)
                current = time.perf_counter()
                gaps.append(current - last)
                last = current

        found, _ = await asyncio.gather(ApiKeyRepository(in_memory_session).authenticate("nope"), ticker())

        assert found is None
        assert max(gaps) < 0.1


class TestCustomerScoping:
    async def test_list_newest_first(self, in_memory_session, owner, other_owner, make_key):
        older = await make_key(owner.id, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        newer = await make_key(owner.id, created_at=datetime(2026, 6, 1, tzinfo=timezone.utc))
        await make_key(other_owner.id)

        listed = await ApiKeyRepository(in_memory_session).list_for_customer(owner.id)

        assert [key.id for key in listed] == [newer.id, older.id]

    async def test_get_for_customer(self, in_memory_session, owner, other_owner, make_key):
        api_key = await make_key(owner.id)
        repository = ApiKeyRepository(in_memory_session)

        assert await repository.get_for_customer(api_key.id, owner.id) is api_key
        assert await repository.get_for_customer(api_key.id, other_owner.id) is None

    async def test_count_active(self, in_memory_session, owner, make_key):
        await make_key(owner.id)
        await make_key(owner.id)
        await make_key(owner.id, status=ApiKeyStatus.REVOKED.value)

        assert await ApiKeyRepository(in_memory_session).count_active(owner.id) == 2


class TestTransitionStatus:
    async def test_moves_only_matching_keys(self, in_memory_session, owner, other_owner, make_key):
        active = await make_key(owner.id)
        revoked = await make_key(owner.id, status=ApiKeyStatus.REVOKED.value)
        foreign = await make_key(other_owner.id)
        repository = ApiKeyRepository(in_memory_session)

        moved = await repository.transition_status(owner.id, ApiKeyStatus.ACTIVE, ApiKeyStatus.SUSPENDED)

        assert moved == 1
        for api_key in (active, revoked, foreign):
            await in_memory_session.refresh(api_key)
        assert active.status == ApiKeyStatus.SUSPENDED
        assert revoked.status == ApiKeyStatus.REVOKED
        assert foreign.status == ApiKeyStatus.ACTIVE
