"""
Support ticketing entity models.

A ticket is a conversation between a customer and the support team. Messages
carry a visibility so staff can leave internal notes on the thread. Every
staff-side change to status, priority or assignee leaves an audit row.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field

from ..base import Base, UTCDateTime, new_id, utc_now


class TicketStatus(str, Enum):
    """Workflow status of a support ticket."""

    OPEN = "open"
    PENDING_SUPPORT = "pending_support"
    PENDING_CUSTOMER = "pending_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    """Priority of a support ticket."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class MessageVisibility(str, Enum):
    """Who can see a ticket message."""

    PUBLIC = "public"
    INTERNAL = "internal"


class SupportTicketBase(Base):
    """Base fields for a support ticket."""

    subject: str = Field(max_length=255)
    description: str
    status: str = Field(default=TicketStatus.OPEN, max_length=32, index=True)
    priority: str = Field(default=TicketPriority.NORMAL, max_length=16, index=True)
    category: Optional[str] = Field(default=None, max_length=120)


class SupportTicket(SupportTicketBase, table=True):
    """Persistent support ticket.

    Table: support_tickets
    """

    __tablename__ = "support_tickets"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    requester_id: str = Field(foreign_key="users.id", index=True, max_length=36)
    created_by_id: str = Field(foreign_key="users.id", max_length=36)
    assignee_id: Optional[str] = Field(default=None, foreign_key="users.id", index=True, max_length=36)
    closed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, sa_column_kwargs={"onupdate": utc_now})

    def __repr__(self) -> str:
        return f"SupportTicket(id={self.id}, status={self.status}, priority={self.priority})"


class SupportTicketMessage(Base, table=True):
    """A message in a ticket thread.

    Table: support_ticket_messages
    """

    __tablename__ = "support_ticket_messages"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    ticket_id: str = Field(foreign_key="support_tickets.id", index=True, max_length=36)
    author_id: Optional[str] = Field(default=None, foreign_key="users.id", max_length=36)
    visibility: str = Field(default=MessageVisibility.PUBLIC, max_length=16)
    body: str

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)

    def __repr__(self) -> str:
        return f"SupportTicketMessage(id={self.id}, ticket_id={self.ticket_id}, visibility={self.visibility})"


class SupportMessageAttachment(Base, table=True):
    """A file uploaded alongside a ticket message.

    Table: support_message_attachments
    """

    __tablename__ = "support_message_attachments"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    message_id: str = Field(foreign_key="support_ticket_messages.id", index=True, max_length=36)
    file_name: str = Field(max_length=255)
    mime_type: Optional[str] = Field(default=None, max_length=255)
    byte_size: int
    storage_url: str

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)

    def __repr__(self) -> str:
        return f"SupportMessageAttachment(id={self.id}, file_name={self.file_name})"


class SupportTicketAudit(Base, table=True):
    """Audit trail entry for a ticket change.

    Table: support_ticket_audits
    """

    __tablename__ = "support_ticket_audits"
    __table_args__ = ({"extend_existing": True},)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    ticket_id: str = Field(foreign_key="support_tickets.id", index=True, max_length=36)
    actor_id: Optional[str] = Field(default=None, foreign_key="users.id", max_length=36)
    action: str = Field(max_length=64)
    old_values: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    new_values: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)

    def __repr__(self) -> str:
        return f"SupportTicketAudit(ticket_id={self.ticket_id}, action={self.action})"
