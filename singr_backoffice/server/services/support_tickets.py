"""
Support ticket workflows.

Creation, replies and staff actions share the rules implemented here:

- public replies quote the last ten public messages of the thread
- replies move the ticket between ``pending_support`` and ``pending_customer``
- staff changes to assignee, priority and status leave an audit row
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from singr_backoffice.core.database.base import utc_now
from singr_backoffice.core.database.entities.support import (
    MessageVisibility,
    SupportMessageAttachment,
    SupportTicket,
    SupportTicketAudit,
    SupportTicketMessage,
    TicketStatus,
)
from singr_backoffice.core.database.entities.users import User
from singr_backoffice.core.database.repositories import SupportTicketRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.support import (
    AdminTicketCreate,
    AttachmentRead,
    TicketCreate,
    TicketMessageRead,
)

from .support_attachments import AttachmentStorage, SavedAttachment

logger = get_logger(__name__)

HISTORY_SEPARATOR = "\n\n-----\n"
HISTORY_DEPTH = 10

# Status a ticket moves to when the given side posts a public reply.
CUSTOMER_REPLY_TRANSITIONS = {
    TicketStatus.PENDING_CUSTOMER: TicketStatus.PENDING_SUPPORT,
    TicketStatus.RESOLVED: TicketStatus.PENDING_SUPPORT,
}
STAFF_REPLY_TRANSITIONS = {
    TicketStatus.OPEN: TicketStatus.PENDING_CUSTOMER,
    TicketStatus.PENDING_SUPPORT: TicketStatus.PENDING_CUSTOMER,
    TicketStatus.RESOLVED: TicketStatus.PENDING_CUSTOMER,
}


def format_timestamp(value: datetime) -> str:
    """``Oct 16, 2026 3:04 PM``"""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%b} {value.day}, {value.year} {hour}:{value.minute:02d} {meridiem}"


def format_history(
    messages: Iterable[SupportTicketMessage],
    authors: Dict[str, User],
    viewer_id: str,
    fallback_author: str,
) -> str:
    """Quote ``messages`` (newest first) as they appear under a reply."""
    entries = []
    for message in messages:
        author = authors.get(message.author_id) if message.author_id else None
        if author is not None and author.id == viewer_id:
            name = "You"
        else:
            name = (author.name or author.email) if author is not None else None
            name = name or fallback_author
        entries.append(f"On {format_timestamp(message.created_at)}, {name} wrote:\n{message.body}")
    return HISTORY_SEPARATOR.join(entries)


def admin_ticket_message(
    customer: Optional[User], form: AdminTicketCreate, attachment_names: Sequence[str]
) -> str:
    """Body of the first message of a ticket opened by staff."""
    name = (customer.name if customer else None) or "Unknown User"
    business = f" ({customer.business_name})" if customer and customer.business_name else ""
    attachments = ", ".join(attachment_names) if attachment_names else "NONE"
    return (
        "--A new support request has been created--\n\n"
        f"Customer: {name}{business}\n"
        f"Priority: {form.priority}\n"
        f"Category: {form.category or 'None'}\n"
        f"Subject: {form.subject}\n"
        f"Description: {form.description}\n\n"
        f"Attachment: {attachments}"
    )


class SupportTicketService:
    """Ticket operations on behalf of a customer or a staff member.

    Attachment files are written before the caller commits. When the commit
    fails the caller rolls back and calls ``discard_written`` so no file
    outlives its rows.
    """

    def __init__(self, session: AsyncSession, storage: AttachmentStorage) -> None:
        self.session = session
        self.storage = storage
        self.tickets = SupportTicketRepository(session)
        self.written: List[SavedAttachment] = []

    def discard_written(self) -> None:
        """Remove every attachment file this service wrote."""
        self.storage.discard(self.written)
        self.written = []

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_for_customer(
        self, requester: User, form: TicketCreate, uploads: Sequence[UploadFile]
    ) -> SupportTicket:
        """Open a ticket whose first public message is the description."""
        ticket = await self.tickets.create(
            SupportTicket(
                requester_id=requester.id,
                created_by_id=requester.id,
                subject=form.subject,
                description=form.description,
                priority=form.priority,
                category=form.category,
            )
        )
        message = await self._add_message(ticket.id, requester.id, MessageVisibility.PUBLIC, form.description)
        await self._store_attachments(ticket.id, message.id, uploads)
        return ticket

    async def create_for_admin(
        self, admin: User, customer: User, form: AdminTicketCreate, uploads: Sequence[UploadFile]
    ) -> SupportTicket:
        """Open a ticket for ``customer``, assigned to the acting admin."""
        ticket = await self.tickets.create(
            SupportTicket(
                requester_id=customer.id,
                created_by_id=admin.id,
                assignee_id=admin.id,
                subject=form.subject,
                description=form.description,
                priority=form.priority,
                category=form.category,
            )
        )
        saved = await self._save_uploads(ticket.id, uploads)
        body = admin_ticket_message(customer, form, [attachment.file_name for attachment in saved])
        message = await self._add_message(ticket.id, customer.id, MessageVisibility.PUBLIC, body)
        await self._attach(message.id, saved)
        await self._audit(
            ticket.id,
            admin.id,
            "created",
            None,
            {
                "subject": ticket.subject,
                "description": ticket.description,
                "priority": ticket.priority,
                "category": ticket.category,
                "status": TicketStatus.OPEN.value,
                "requester_id": ticket.requester_id,
                "created_by": "admin",
            },
        )
        return ticket

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    async def reply(
        self,
        ticket: SupportTicket,
        author: User,
        body: str,
        uploads: Sequence[UploadFile],
        visibility: str = MessageVisibility.PUBLIC,
        from_staff: bool = False,
    ) -> SupportTicketMessage:
        """
        Post a reply and advance the ticket status.

        Public replies carry the quoted thread history. Internal notes are
        stored as written and never change the status.
        """
        if visibility == MessageVisibility.PUBLIC:
            history = await self._history(ticket.id, author.id, "Customer" if from_staff else "Support team")
            if history:
                body = f"{body}{HISTORY_SEPARATOR}{history}"

        message = await self._add_message(ticket.id, author.id, visibility, body)

        if visibility == MessageVisibility.PUBLIC:
            transitions = STAFF_REPLY_TRANSITIONS if from_staff else CUSTOMER_REPLY_TRANSITIONS
            next_status = transitions.get(TicketStatus(ticket.status))
            if next_status is not None:
                ticket.status = next_status.value
                ticket.updated_at = utc_now()
                self.session.add(ticket)
                await self.session.flush()

        await self._store_attachments(ticket.id, message.id, uploads)
        return message

    async def _history(self, ticket_id: str, viewer_id: str, fallback_author: str) -> str:
        messages = await self.tickets.messages(ticket_id, public_only=True, newest_first=True, limit=HISTORY_DEPTH)
        authors = await self._authors(message.author_id for message in messages)
        return format_history(messages, authors, viewer_id, fallback_author)

    # ------------------------------------------------------------------
    # Staff actions
    # ------------------------------------------------------------------

    async def assign(self, ticket: SupportTicket, actor: User, assignee_id: Optional[str]) -> None:
        old = ticket.assignee_id
        ticket.assignee_id = assignee_id
        await self._save_change(ticket, actor, "assignee_changed", {"assignee_id": old}, {"assignee_id": assignee_id})

    async def set_priority(self, ticket: SupportTicket, actor: User, priority: str) -> None:
        old = ticket.priority
        ticket.priority = priority
        await self._save_change(ticket, actor, "priority_changed", {"priority": old}, {"priority": priority})

    async def set_status(self, ticket: SupportTicket, actor: User, status: str) -> None:
        old = ticket.status
        ticket.status = status
        ticket.closed_at = utc_now() if status == TicketStatus.CLOSED else None
        await self._save_change(ticket, actor, "status_changed", {"status": old}, {"status": status})

    async def _save_change(
        self, ticket: SupportTicket, actor: User, action: str, old: Dict[str, Any], new: Dict[str, Any]
    ) -> None:
        ticket.updated_at = utc_now()
        self.session.add(ticket)
        await self._audit(ticket.id, actor.id, action, old, new)
        logger.info(f"Ticket {ticket.id} {action} by {actor.id}: {old} -> {new}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def thread(self, ticket_id: str, public_only: bool) -> List[TicketMessageRead]:
        """Messages in posting order with author names and attachments."""
        messages = await self.tickets.messages(ticket_id, public_only=public_only)
        authors = await self._authors(message.author_id for message in messages)
        attachments = await self.tickets.attachments_for([message.id for message in messages])
        thread = []
        for message in messages:
            author = authors.get(message.author_id) if message.author_id else None
            thread.append(
                TicketMessageRead(
                    id=message.id,
                    author_id=message.author_id,
                    author_name=(author.name or author.email) if author else None,
                    visibility=message.visibility,
                    body=message.body,
                    created_at=message.created_at,
                    attachments=[AttachmentRead.model_validate(a) for a in attachments.get(message.id, [])],
                )
            )
        return thread

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _authors(self, author_ids: Iterable[Optional[str]]) -> Dict[str, User]:
        ids = {author_id for author_id in author_ids if author_id}
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def _add_message(self, ticket_id: str, author_id: str, visibility: str, body: str) -> SupportTicketMessage:
        message = SupportTicketMessage(ticket_id=ticket_id, author_id=author_id, visibility=visibility, body=body)
        self.session.add(message)
        await self.session.flush()
        return message

    async def _save_uploads(self, ticket_id: str, uploads: Sequence[UploadFile]) -> List[SavedAttachment]:
        saved = await self.storage.save_all(ticket_id, uploads)
        self.written.extend(saved)
        return saved

    async def _store_attachments(self, ticket_id: str, message_id: str, uploads: Sequence[UploadFile]) -> None:
        await self._attach(message_id, await self._save_uploads(ticket_id, uploads))

    async def _attach(self, message_id: str, saved: Sequence[SavedAttachment]) -> None:
        for attachment in saved:
            self.session.add(
                SupportMessageAttachment(
                    message_id=message_id,
                    file_name=attachment.file_name,
                    mime_type=attachment.mime_type,
                    byte_size=attachment.byte_size,
                    storage_url=attachment.storage_url,
                )
            )
        if saved:
            await self.session.flush()

    async def _audit(
        self,
        ticket_id: str,
        actor_id: str,
        action: str,
        old_values: Optional[Dict[str, Any]],
        new_values: Optional[Dict[str, Any]],
    ) -> None:
        self.session.add(
            SupportTicketAudit(
                ticket_id=ticket_id,
                actor_id=actor_id,
                action=action,
                old_values=old_values,
                new_values=new_values,
            )
        )
        await self.session.flush()
