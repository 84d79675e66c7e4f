"""Unit tests for the support ticket repository."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from singr_backoffice.core.database.entities.support import (
    MessageVisibility,
    SupportMessageAttachment,
    SupportTicket,
    SupportTicketAudit,
    SupportTicketMessage,
)
from singr_backoffice.core.database.repositories import SupportTicketRepository

BASE = datetime(2026, 10, 16, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
async def ticket(in_memory_session, owner):
    ticket = SupportTicket(
        requester_id=owner.id, created_by_id=owner.id, subject="Sync issue", description="Requests stopped syncing."
    )
    in_memory_session.add(ticket)
    await in_memory_session.flush()
    return ticket


@pytest.fixture
async def thread(in_memory_session, ticket, owner):
    messages = [
        SupportTicketMessage(ticket_id=ticket.id, author_id=owner.id, body="first", created_at=BASE),
        SupportTicketMessage(
            ticket_id=ticket.id,
            author_id=owner.id,
            body="staff only",
            visibility=MessageVisibility.INTERNAL.value,
            created_at=BASE + timedelta(minutes=1),
        ),
        SupportTicketMessage(
            ticket_id=ticket.id, author_id=owner.id, body="third", created_at=BASE + timedelta(minutes=2)
        ),
    ]
    in_memory_session.add_all(messages)
    await in_memory_session.flush()
    return messages


class TestSearch:
    async def test_filters_and_orders_by_update(self, in_memory_session, owner):
        rows = [
            SupportTicket(
                requester_id=owner.id,
                created_by_id=owner.id,
                subject=f"Ticket {n}",
                description="Something broke again.",
                priority=priority,
                status=status,
                updated_at=BASE + timedelta(hours=n),
            )
            for n, priority, status in [(1, "high", "open"), (2, "low", "open"), (3, "high", "closed")]
        ]
        in_memory_session.add_all(rows)
        await in_memory_session.flush()
        repository = SupportTicketRepository(in_memory_session)

        everything = await repository.search()
        assert [t.subject for t in everything] == ["Ticket 3", "Ticket 2", "Ticket 1"]

        high = await repository.search(filters={"priority": "high", "status": None})
        assert [t.subject for t in high] == ["Ticket 3", "Ticket 1"]

        limited = await repository.search(limit=1)
        assert [t.subject for t in limited] == ["Ticket 3"]


class TestMessages:
    async def test_posting_order(self, in_memory_session, ticket, thread):
        messages = await SupportTicketRepository(in_memory_session).messages(ticket.id)

        assert [m.body for m in messages] == ["first", "staff only", "third"]

    async def test_public_newest_first_with_limit(self, in_memory_session, ticket, thread):
        messages = await SupportTicketRepository(in_memory_session).messages(
            ticket.id, public_only=True, newest_first=True, limit=1
        )

        assert [m.body for m in messages] == ["third"]

    async def test_attachments_grouped_by_message(self, in_memory_session, ticket, thread):
        in_memory_session.add(
            SupportMessageAttachment(
                message_id=thread[0].id, file_name="log.txt", byte_size=3, storage_url="/uploads/support/x/log.txt"
            )
        )
        await in_memory_session.flush()
        repository = SupportTicketRepository(in_memory_session)

        grouped = await repository.attachments_for([thread[0].id, thread[2].id])

        assert [a.file_name for a in grouped[thread[0].id]] == ["log.txt"]
        assert grouped[thread[2].id] == []
        assert await repository.attachments_for([]) == {}

    async def test_audits_newest_first(self, in_memory_session, ticket, owner):
        in_memory_session.add_all(
            [
                SupportTicketAudit(ticket_id=ticket.id, actor_id=owner.id, action="created", created_at=BASE),
                SupportTicketAudit(
                    ticket_id=ticket.id, actor_id=owner.id, action="status_changed", created_at=BASE + timedelta(hours=1)
                ),
            ]
        )
        await in_memory_session.flush()

        audits = await SupportTicketRepository(in_memory_session).audits(ticket.id)

        assert [a.action for a in audits] == ["status_changed", "created"]
