"""
Support ticket I/O models.

Ticket creation and replies arrive as multipart forms (they may carry file
attachments), so only responses and the JSON admin actions are modeled here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator

from singr_backoffice.core.database.entities.support import TicketPriority, TicketStatus


class AttachmentRead(BaseModel):
    id: str
    file_name: str
    mime_type: Optional[str] = None
    byte_size: int
    storage_url: str
    created_at: datetime

    class Config:
        from_attributes = True


class TicketMessageRead(BaseModel):
    """A message in a ticket thread with its attachments."""

    id: str
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    visibility: str
    body: str
    created_at: datetime
    attachments: list[AttachmentRead] = []


class TicketAuditRead(BaseModel):
    id: str
    actor_id: Optional[str] = None
    action: str
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TicketRead(BaseModel):
    """Schema for reading a support ticket."""

    id: str
    subject: str
    description: str
    status: str
    priority: str
    category: Optional[str] = None
    requester_id: str
    created_by_id: str
    assignee_id: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TicketDetail(BaseModel):
    ticket: TicketRead
    messages: list[TicketMessageRead]
    audits: Optional[list[TicketAuditRead]] = None


class CreatedResponse(BaseModel):
    id: str


class TicketAssign(BaseModel):
    """Assign a ticket to a staff member, or unassign with null."""

    assignee_id: Optional[str] = None

    @field_validator("assignee_id")
    @classmethod
    def check_assignee_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        try:
            return str(UUID(value))
        except ValueError:
            raise ValueError("Invalid assignee ID") from None


class TicketPriorityUpdate(BaseModel):
    priority: str

    @field_validator("priority")
    @classmethod
    def check_priority(cls, value: str) -> str:
        if value not in {p.value for p in TicketPriority}:
            raise ValueError("Invalid priority")
        return value


class TicketStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def check_status(cls, value: str) -> str:
        if value not in {s.value for s in TicketStatus}:
            raise ValueError("Invalid status")
        return value


class SuccessResponse(BaseModel):
    success: bool = True


class TicketCreate(BaseModel):
    """Fields of the customer ticket form."""

    subject: str
    description: str
    priority: str = TicketPriority.NORMAL.value
    category: Optional[str] = None

    @field_validator("subject")
    @classmethod
    def check_subject(cls, value: str) -> str:
        if len(value) < 5:
            raise ValueError("Subject must be at least 5 characters.")
        return value

    @field_validator("description")
    @classmethod
    def check_description(cls, value: str) -> str:
        if len(value) < 10:
            raise ValueError("Description must be at least 10 characters.")
        return value

    @field_validator("priority")
    @classmethod
    def check_priority(cls, value: str) -> str:
        if value not in {p.value for p in TicketPriority}:
            raise ValueError("Invalid priority")
        return value

    @field_validator("category")
    @classmethod
    def check_category(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class AdminTicketCreate(TicketCreate):
    """Fields of the admin form that opens a ticket on a customer's behalf."""

    customer_id: str

    @field_validator("customer_id")
    @classmethod
    def check_customer_id(cls, value: str) -> str:
        try:
            return str(UUID(value))
        except ValueError:
            raise ValueError("Invalid customer") from None
