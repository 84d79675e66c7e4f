import pytest
from httpx import AsyncClient
from sqlmodel import select

from singr_backoffice.core.database.entities.support import SupportTicket, SupportTicketMessage

pytestmark = pytest.mark.asyncio

SUPPORT_URL = "/api/v1/admin/support/tickets"


async def open_for(client: AsyncClient, headers, customer_id: str, files=None, **overrides) -> str:
    form = {
        "customer_id": customer_id,
        "subject": "Venue setup call",
        "description": "Walked the host through venue creation.",
        "priority": "normal",
        **overrides,
    }
    response = await client.post(SUPPORT_URL, data=form, files=files, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["id"]


class TestCreateForCustomer:
    async def test_ticket_is_assigned_to_creator(self, client: AsyncClient, session, customer, admin, admin_headers):
        ticket_id = await open_for(
            client,
            admin_headers,
            customer.id,
            category="onboarding",
            files=[("attachments", ("notes.pdf", b"%PDF-1.4", "application/pdf"))],
        )

        ticket = await session.get(SupportTicket, ticket_id)
        assert ticket.requester_id == customer.id
        assert ticket.created_by_id == admin.id
        assert ticket.assignee_id == admin.id

        (message,) = (await session.execute(select(SupportTicketMessage))).scalars().all()
        assert message.author_id == customer.id
        assert message.body == (
            "--A new support request has been created--\n\n"
            "Customer: Karaoke Host\n"
            "Priority: normal\n"
            "Category: onboarding\n"
            "Subject: Venue setup call\n"
            "Description: Walked the host through venue creation.\n\n"
            "Attachment: notes.pdf"
        )

        detail = (await client.get(f"{SUPPORT_URL}/{ticket_id}", headers=admin_headers)).json()
        (audit,) = detail["audits"]
        assert audit["action"] == "created"
        assert audit["new_values"]["created_by"] == "admin"

    async def test_failed_commit_removes_written_files(
        self, client: AsyncClient, session, customer, admin_headers, attachment_storage, monkeypatch
    ):
        async def failing_commit():
            raise RuntimeError("database went away")

        monkeypatch.setattr(session, "commit", failing_commit)

        response = await client.post(
            SUPPORT_URL,
            data={
                "customer_id": customer.id,
                "subject": "Venue setup call",
                "description": "Walked the host through venue creation.",
            },
            files=[("attachments", ("notes.pdf", b"%PDF-1.4", "application/pdf"))],
            headers=admin_headers,
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "Unable to create support ticket"}
        root = attachment_storage.root / "uploads" / "support"
        assert [path for path in root.rglob("*") if path.is_file()] == []

    async def test_invalid_customer(self, client: AsyncClient, admin, admin_headers):
        response = await client.post(
            SUPPORT_URL,
            data={
                "customer_id": admin.id,
                "subject": "Venue setup call",
                "description": "Walked the host through venue creation.",
            },
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid customer"}

    async def test_malformed_customer_id(self, client: AsyncClient, admin_headers):
        response = await client.post(
            SUPPORT_URL,
            data={"customer_id": "nope", "subject": "Venue setup", "description": "Long enough description"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid customer"}

    async def test_customers_cannot_use_staff_routes(self, client: AsyncClient, customer, auth_headers):
        response = await client.get(SUPPORT_URL, headers=auth_headers)
        assert response.status_code == 401


class TestStaffReplies:
    async def test_internal_note_keeps_status(self, client: AsyncClient, session, customer, admin_headers):
        ticket_id = await open_for(client, admin_headers, customer.id)

        response = await client.post(
            f"{SUPPORT_URL}/{ticket_id}/messages",
            data={"body": "Check their OpenKJ version", "visibility": "internal"},
            headers=admin_headers,
        )

        message = await session.get(SupportTicketMessage, response.json()["id"])
        assert message.body == "Check their OpenKJ version"
        assert (await session.get(SupportTicket, ticket_id)).status == "open"

    async def test_public_reply_waits_on_customer(self, client: AsyncClient, session, customer, admin_headers):
        ticket_id = await open_for(client, admin_headers, customer.id)

        response = await client.post(
            f"{SUPPORT_URL}/{ticket_id}/messages", data={"body": "All set!"}, headers=admin_headers
        )

        message = await session.get(SupportTicketMessage, response.json()["id"])
        assert message.body.startswith("All set!\n\n-----\nOn ")
        assert "Karaoke Host wrote:\n--A new support request has been created--" in message.body
        assert (await session.get(SupportTicket, ticket_id)).status == "pending_customer"

    @pytest.mark.parametrize(
        "form,message",
        [
            ({"body": "Hello", "visibility": "secret"}, "Invalid visibility"),
            ({"body": "  "}, "Message body is required"),
        ],
    )
    async def test_reply_validation(self, client: AsyncClient, customer, admin_headers, form, message):
        ticket_id = await open_for(client, admin_headers, customer.id)
        response = await client.post(f"{SUPPORT_URL}/{ticket_id}/messages", data=form, headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"detail": message}

    async def test_unknown_ticket(self, client: AsyncClient, admin_headers):
        response = await client.post(f"{SUPPORT_URL}/missing/messages", data={"body": "Hi"}, headers=admin_headers)
        assert response.status_code == 404
        assert response.json() == {"detail": "Ticket not found"}


class TestStaffActions:
    async def test_assign_priority_and_status_are_audited(
        self, client: AsyncClient, session, customer, admin, admin_headers, support_admin, support_headers
    ):
        ticket_id = await open_for(client, admin_headers, customer.id)

        assigned = await client.patch(
            f"{SUPPORT_URL}/{ticket_id}/assign", json={"assignee_id": support_admin.id}, headers=admin_headers
        )
        await client.patch(f"{SUPPORT_URL}/{ticket_id}/priority", json={"priority": "urgent"}, headers=support_headers)
        await client.patch(f"{SUPPORT_URL}/{ticket_id}/status", json={"status": "closed"}, headers=support_headers)

        assert assigned.json() == {"success": True}
        ticket = await session.get(SupportTicket, ticket_id)
        assert ticket.assignee_id == support_admin.id
        assert ticket.priority == "urgent"
        assert ticket.closed_at is not None

        detail = (await client.get(f"{SUPPORT_URL}/{ticket_id}", headers=admin_headers)).json()
        actions = {audit["action"]: audit for audit in detail["audits"]}
        assert actions["assignee_changed"]["old_values"] == {"assignee_id": admin.id}
        assert actions["priority_changed"]["new_values"] == {"priority": "urgent"}
        assert actions["status_changed"]["actor_id"] == support_admin.id

    async def test_reopening_clears_closed_at(self, client: AsyncClient, session, customer, admin_headers):
        ticket_id = await open_for(client, admin_headers, customer.id)
        await client.patch(f"{SUPPORT_URL}/{ticket_id}/status", json={"status": "closed"}, headers=admin_headers)

        await client.patch(f"{SUPPORT_URL}/{ticket_id}/status", json={"status": "open"}, headers=admin_headers)

        assert (await session.get(SupportTicket, ticket_id)).closed_at is None

    async def test_customer_cannot_be_assignee(self, client: AsyncClient, customer, admin_headers):
        ticket_id = await open_for(client, admin_headers, customer.id)
        response = await client.patch(
            f"{SUPPORT_URL}/{ticket_id}/assign", json={"assignee_id": customer.id}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid assignee"}

    async def test_unassign(self, client: AsyncClient, session, customer, admin_headers):
        ticket_id = await open_for(client, admin_headers, customer.id)
        await client.patch(f"{SUPPORT_URL}/{ticket_id}/assign", json={"assignee_id": None}, headers=admin_headers)
        assert (await session.get(SupportTicket, ticket_id)).assignee_id is None

    @pytest.mark.parametrize(
        "path,payload,message",
        [
            ("priority", {"priority": "someday"}, "Invalid priority"),
            ("status", {"status": "archived"}, "Invalid status"),
        ],
    )
    async def test_invalid_values(self, client: AsyncClient, customer, admin_headers, path, payload, message):
        ticket_id = await open_for(client, admin_headers, customer.id)
        response = await client.patch(f"{SUPPORT_URL}/{ticket_id}/{path}", json=payload, headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"detail": message}


class TestTicketList:
    async def test_filters(self, client: AsyncClient, customer, admin_headers):
        urgent = await open_for(client, admin_headers, customer.id, priority="urgent")
        await open_for(client, admin_headers, customer.id, priority="low")

        everything = (await client.get(SUPPORT_URL, headers=admin_headers)).json()
        filtered = (await client.get(SUPPORT_URL, params={"priority": "urgent"}, headers=admin_headers)).json()

        assert len(everything) == 2
        assert [t["id"] for t in filtered] == [urgent]

    async def test_staff_see_internal_notes(self, client: AsyncClient, customer, admin_headers):
        ticket_id = await open_for(client, admin_headers, customer.id)
        await client.post(
            f"{SUPPORT_URL}/{ticket_id}/messages", data={"body": "Internal", "visibility": "internal"}, headers=admin_headers
        )

        detail = (await client.get(f"{SUPPORT_URL}/{ticket_id}", headers=admin_headers)).json()

        assert [m["visibility"] for m in detail["messages"]] == ["public", "internal"]
