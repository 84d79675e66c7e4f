"""
Admin Support Endpoints.

The staff side of the ticket system. Staff see every message, internal notes
included, along with the audit trail of assignment, priority and status
changes.
"""

from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError

from singr_backoffice.core.database.entities.support import MessageVisibility, SupportTicket
from singr_backoffice.core.database.entities.users import AccountType, User
from singr_backoffice.core.database.repositories import SupportTicketRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.support import (
    AdminTicketCreate,
    CreatedResponse,
    SuccessResponse,
    TicketAssign,
    TicketAuditRead,
    TicketDetail,
    TicketPriorityUpdate,
    TicketRead,
    TicketStatusUpdate,
)
from singr_backoffice.server.exception_handlers import first_error_message
from singr_backoffice.server.services.deps import AdminUser, AttachmentStorageDep, SessionDep
from singr_backoffice.server.services.support_attachments import AttachmentValidationError
from singr_backoffice.server.services.support_tickets import SupportTicketService

logger = get_logger(__name__)
router = APIRouter()

TICKET_LIST_LIMIT = 200


async def _ticket(session: SessionDep, ticket_id: str) -> SupportTicket:
    ticket = await SupportTicketRepository(session).get_by_id(ticket_id)
    if ticket is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


@router.get(
    "/tickets",
    response_model=List[TicketRead],
    summary="List Tickets",
    description="All tickets, optionally filtered by status, priority or assignee.",
    response_description="Tickets, most recently updated first.",
)
async def list_tickets(
    admin: AdminUser,
    session: SessionDep,
    status: Optional[str] = Query(default=None),
    priority: Optional[str] = Query(default=None),
    assignee_id: Optional[str] = Query(default=None),
) -> List[TicketRead]:
    tickets = await SupportTicketRepository(session).search(
        filters={"status": status, "priority": priority, "assignee_id": assignee_id},
        limit=TICKET_LIST_LIMIT,
    )
    return [TicketRead.model_validate(ticket) for ticket in tickets]


@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketDetail,
    summary="Get Ticket",
    description="A ticket with its full thread, internal notes included, and its audit trail.",
    response_description="Ticket, thread and audits.",
    responses={404: {"description": "Ticket not found"}},
)
async def get_ticket(
    ticket_id: str, admin: AdminUser, session: SessionDep, storage: AttachmentStorageDep
) -> TicketDetail:
    ticket = await _ticket(session, ticket_id)
    messages = await SupportTicketService(session, storage).thread(ticket.id, public_only=False)
    audits = await SupportTicketRepository(session).audits(ticket.id)
    return TicketDetail(
        ticket=TicketRead.model_validate(ticket),
        messages=messages,
        audits=[TicketAuditRead.model_validate(audit) for audit in audits],
    )


@router.post(
    "/tickets",
    response_model=CreatedResponse,
    summary="Open Ticket For Customer",
    description="Open a ticket on a customer's behalf, assigned to the acting admin.",
    response_description="The new ticket id.",
    responses={400: {"description": "Invalid form, customer or attachment"}},
)
async def create_ticket(
    admin: AdminUser,
    session: SessionDep,
    storage: AttachmentStorageDep,
    customer_id: str = Form(default=""),
    subject: str = Form(default=""),
    description: str = Form(default=""),
    priority: str = Form(default="normal"),
    category: Optional[str] = Form(default=None),
    attachments: List[UploadFile] = File(default=[]),
) -> CreatedResponse:
    try:
        form = AdminTicketCreate(
            customer_id=customer_id, subject=subject, description=description, priority=priority, category=category
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=first_error_message(e.errors())) from e

    customer = await session.get(User, form.customer_id)
    if customer is None or customer.account_type != AccountType.CUSTOMER:
        raise HTTPException(status_code=400, detail="Invalid customer")

    service = SupportTicketService(session, storage)
    try:
        ticket = await service.create_for_admin(admin, customer, form, attachments)
        await session.commit()
    except AttachmentValidationError as e:
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to create support ticket for customer {customer.id}: {e}", exc_info=True)
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=500, detail="Unable to create support ticket") from e

    logger.info(f"Support ticket {ticket.id} opened by admin {admin.id} for customer {customer.id}")
    return CreatedResponse(id=ticket.id)


@router.post(
    "/tickets/{ticket_id}/messages",
    response_model=CreatedResponse,
    summary="Reply To Ticket",
    description="Post a public reply or an internal note.",
    response_description="The new message id.",
    responses={400: {"description": "Blank body, invalid visibility or attachment"}, 404: {"description": "Ticket not found"}},
)
async def reply_to_ticket(
    ticket_id: str,
    admin: AdminUser,
    session: SessionDep,
    storage: AttachmentStorageDep,
    body: str = Form(default=""),
    visibility: str = Form(default=MessageVisibility.PUBLIC.value),
    attachments: List[UploadFile] = File(default=[]),
) -> CreatedResponse:
    ticket = await _ticket(session, ticket_id)
    if visibility not in {v.value for v in MessageVisibility}:
        raise HTTPException(status_code=400, detail="Invalid visibility")
    body = body.strip()
    if not body:
        raise HTTPException(status_code=400, detail="Message body is required")

    service = SupportTicketService(session, storage)
    try:
        message = await service.reply(
            ticket, admin, body, attachments, visibility=visibility, from_staff=True
        )
        await session.commit()
    except AttachmentValidationError as e:
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to post staff reply on ticket {ticket_id}: {e}", exc_info=True)
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=500, detail="Unable to send message") from e

    return CreatedResponse(id=message.id)


@router.patch(
    "/tickets/{ticket_id}/assign",
    response_model=SuccessResponse,
    summary="Assign Ticket",
    description="Assign the ticket to a staff member, or unassign it with null.",
    response_description="Success flag.",
    responses={400: {"description": "Invalid assignee"}, 404: {"description": "Ticket not found"}},
)
async def assign_ticket(
    ticket_id: str, payload: TicketAssign, admin: AdminUser, session: SessionDep, storage: AttachmentStorageDep
) -> SuccessResponse:
    ticket = await _ticket(session, ticket_id)
    if payload.assignee_id is not None:
        assignee = await session.get(User, payload.assignee_id)
        if assignee is None or not assignee.is_admin:
            raise HTTPException(status_code=400, detail="Invalid assignee")

    await SupportTicketService(session, storage).assign(ticket, admin, payload.assignee_id)
    await session.commit()
    return SuccessResponse()


@router.patch(
    "/tickets/{ticket_id}/priority",
    response_model=SuccessResponse,
    summary="Set Ticket Priority",
    response_description="Success flag.",
    responses={400: {"description": "Invalid priority"}, 404: {"description": "Ticket not found"}},
)
async def set_priority(
    ticket_id: str, payload: TicketPriorityUpdate, admin: AdminUser, session: SessionDep, storage: AttachmentStorageDep
) -> SuccessResponse:
    ticket = await _ticket(session, ticket_id)
    await SupportTicketService(session, storage).set_priority(ticket, admin, payload.priority)
    await session.commit()
    return SuccessResponse()


@router.patch(
    "/tickets/{ticket_id}/status",
    response_model=SuccessResponse,
    summary="Set Ticket Status",
    description="Change the status. Closing records closed_at; any other status clears it.",
    response_description="Success flag.",
    responses={400: {"description": "Invalid status"}, 404: {"description": "Ticket not found"}},
)
async def set_status(
    ticket_id: str, payload: TicketStatusUpdate, admin: AdminUser, session: SessionDep, storage: AttachmentStorageDep
) -> SuccessResponse:
    ticket = await _ticket(session, ticket_id)
    await SupportTicketService(session, storage).set_status(ticket, admin, payload.status)
    await session.commit()
    return SuccessResponse()
