"""
Customer Support Endpoints.

Ticket creation and replies are multipart forms so that files can be
attached. Customers only ever see the public side of a thread.
"""

from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError

from singr_backoffice.core.database.entities.support import SupportTicket, TicketStatus
from singr_backoffice.core.database.repositories import SupportTicketRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.support import CreatedResponse, TicketCreate, TicketDetail, TicketRead
from singr_backoffice.server.exception_handlers import first_error_message
from singr_backoffice.server.services.deps import AttachmentStorageDep, CurrentUser, CustomerUser, SessionDep
from singr_backoffice.server.services.support_attachments import AttachmentValidationError, content_type_for
from singr_backoffice.server.services.support_tickets import SupportTicketService

logger = get_logger(__name__)
router = APIRouter()


@router.get(
    "/tickets",
    response_model=List[TicketRead],
    summary="List My Tickets",
    description="Tickets requested by the signed-in customer, newest first.",
    response_description="List of tickets.",
)
async def list_tickets(user: CustomerUser, session: SessionDep) -> List[TicketRead]:
    tickets = await SupportTicketRepository(session).list(
        filters={"requester_id": user.id}, order_by=SupportTicket.created_at.desc()
    )
    return [TicketRead.model_validate(ticket) for ticket in tickets]


@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketDetail,
    summary="Get My Ticket",
    description="A ticket with its public messages and their attachments.",
    response_description="Ticket and thread.",
    responses={404: {"description": "Ticket not found"}},
)
async def get_ticket(
    ticket_id: str, user: CustomerUser, session: SessionDep, storage: AttachmentStorageDep
) -> TicketDetail:
    ticket = await SupportTicketRepository(session).get_by_id(ticket_id)
    if ticket is None or ticket.requester_id != user.id:
        raise HTTPException(status_code=404, detail="Ticket not found")
    messages = await SupportTicketService(session, storage).thread(ticket.id, public_only=True)
    return TicketDetail(ticket=TicketRead.model_validate(ticket), messages=messages)


@router.post(
    "/tickets",
    response_model=CreatedResponse,
    summary="Open Ticket",
    description="Open a support ticket; the description becomes the first message.",
    response_description="The new ticket id.",
    responses={400: {"description": "Invalid form or attachment"}, 500: {"description": "Ticket could not be created"}},
)
async def create_ticket(
    user: CustomerUser,
    session: SessionDep,
    storage: AttachmentStorageDep,
    subject: str = Form(default=""),
    description: str = Form(default=""),
    priority: str = Form(default="normal"),
    category: Optional[str] = Form(default=None),
    attachments: List[UploadFile] = File(default=[]),
) -> CreatedResponse:
    try:
        form = TicketCreate(subject=subject, description=description, priority=priority, category=category)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=first_error_message(e.errors())) from e

    service = SupportTicketService(session, storage)
    try:
        ticket = await service.create_for_customer(user, form, attachments)
        await session.commit()
    except AttachmentValidationError as e:
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to create support ticket for user {user.id}: {e}", exc_info=True)
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=500, detail="Unable to create support ticket") from e

    logger.info(f"Support ticket {ticket.id} opened by user {user.id}")
    return CreatedResponse(id=ticket.id)


@router.post(
    "/tickets/{ticket_id}/messages",
    response_model=CreatedResponse,
    summary="Reply To Ticket",
    description="Post a public reply. The ticket moves back to the support team's queue.",
    response_description="The new message id.",
    responses={
        400: {"description": "Blank body, invalid attachment or closed ticket"},
        404: {"description": "Ticket not found"},
    },
)
async def reply_to_ticket(
    ticket_id: str,
    user: CustomerUser,
    session: SessionDep,
    storage: AttachmentStorageDep,
    body: str = Form(default=""),
    attachments: List[UploadFile] = File(default=[]),
) -> CreatedResponse:
    body = body.strip()
    if not body:
        raise HTTPException(status_code=400, detail="Message body is required")

    ticket = await SupportTicketRepository(session).get_by_id(ticket_id)
    if ticket is None or ticket.requester_id != user.id:
        raise HTTPException(status_code=404, detail="Ticket not found")
    if ticket.status == TicketStatus.CLOSED:
        raise HTTPException(status_code=400, detail="This ticket is closed and cannot receive new messages.")

    service = SupportTicketService(session, storage)
    try:
        message = await service.reply(ticket, user, body, attachments)
        await session.commit()
    except AttachmentValidationError as e:
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Failed to post reply on ticket {ticket_id}: {e}", exc_info=True)
        service.discard_written()
        await session.rollback()
        raise HTTPException(status_code=500, detail="Unable to send message") from e

    return CreatedResponse(id=message.id)


@router.get(
    "/attachments/{ticket_id}/{filename}",
    summary="Download Attachment",
    description="Stream a ticket attachment to staff or to the ticket's participants.",
    response_description="The file contents.",
    responses={
        403: {"description": "Not a participant of the ticket"},
        404: {"description": "Ticket or file not found"},
    },
)
async def download_attachment(
    ticket_id: str, filename: str, user: CurrentUser, session: SessionDep, storage: AttachmentStorageDep
) -> FileResponse:
    ticket = await SupportTicketRepository(session).get_by_id(ticket_id)
    if ticket is None:
        logger.warning(f"Attachment requested for unknown ticket {ticket_id} by {user.id}")
        raise HTTPException(status_code=404, detail="Ticket not found")

    participants = {ticket.requester_id, ticket.assignee_id, ticket.created_by_id}
    if not user.is_admin and user.id not in participants:
        logger.warning(f"Unauthorized attachment access attempt on ticket {ticket_id} by {user.id}")
        raise HTTPException(status_code=403, detail="Forbidden")

    path = storage.resolve(ticket_id, filename)
    if path is None:
        logger.error(f"Attachment file not found: {ticket_id}/{filename}")
        raise HTTPException(status_code=404, detail="File not found")

    logger.info(f"Attachment {ticket_id}/{filename} accessed by {user.id}")
    return FileResponse(
        path,
        media_type=content_type_for(filename),
        headers={
            "Content-Disposition": f'inline; filename="{filename}"',
            "Cache-Control": "private, max-age=3600",
        },
    )
