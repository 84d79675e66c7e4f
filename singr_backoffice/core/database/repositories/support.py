"""
Support ticket repository.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.support import (
    MessageVisibility,
    SupportMessageAttachment,
    SupportTicket,
    SupportTicketAudit,
    SupportTicketMessage,
)
from .base import BaseRepository, QueryBuilder


class SupportTicketRepository(BaseRepository[SupportTicket]):
    """Data access for tickets and their threads."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, SupportTicket)

    async def search(self, filters: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[SupportTicket]:
        """Tickets matching equality filters, most recently updated first."""
        stmt = select(SupportTicket)
        stmt = QueryBuilder.apply_filters(stmt, SupportTicket, filters or {})
        stmt = stmt.order_by(SupportTicket.updated_at.desc())
        stmt = QueryBuilder.apply_pagination(stmt, limit, None)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def messages(
        self,
        ticket_id: str,
        public_only: bool = False,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[SupportTicketMessage]:
        stmt = select(SupportTicketMessage).where(SupportTicketMessage.ticket_id == ticket_id)
        if public_only:
            stmt = stmt.where(SupportTicketMessage.visibility == MessageVisibility.PUBLIC)
        if newest_first:
            stmt = stmt.order_by(SupportTicketMessage.created_at.desc())
        else:
            stmt = stmt.order_by(SupportTicketMessage.created_at)
        stmt = QueryBuilder.apply_pagination(stmt, limit, None)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def attachments_for(self, message_ids: List[str]) -> Dict[str, List[SupportMessageAttachment]]:
        """Attachments grouped by message id."""
        grouped: Dict[str, List[SupportMessageAttachment]] = {message_id: [] for message_id in message_ids}
        if not message_ids:
            return grouped
        stmt = (
            select(SupportMessageAttachment)
            .where(SupportMessageAttachment.message_id.in_(message_ids))
            .order_by(SupportMessageAttachment.created_at)
        )
        result = await self.session.execute(stmt)
        for attachment in result.scalars().all():
            grouped[attachment.message_id].append(attachment)
        return grouped

    async def audits(self, ticket_id: str) -> List[SupportTicketAudit]:
        stmt = (
            select(SupportTicketAudit)
            .where(SupportTicketAudit.ticket_id == ticket_id)
            .order_by(SupportTicketAudit.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
