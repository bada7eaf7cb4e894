from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.api.dependencies import DashboardServiceDep, TicketServiceDep
from helpdesk.entities.schemas import AttachmentResponse, CommentResponse
from helpdesk.tickets.models import AuditLogEntry, Ticket
from helpdesk.tickets.state import TicketPriority, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


# Text fields are optional here so that length rules surface as 400s from
# the service rather than as schema errors.
class TicketCreateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    priority: str = Field(default=TicketPriority.MEDIUM.value)
    category_id: str | None = None
    department_id: str | None = None
    reporter_id: str | None = None
    performed_by: str | None = None


class TicketUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    priority: str | None = None
    category_id: str | None = None
    department_id: str | None = None
    performed_by: str | None = None


class AssignAgentRequest(BaseModel):
    agent_id: str
    remarks: str | None = None
    performed_by: str | None = None


class ChangePriorityRequest(BaseModel):
    priority: str
    reason: str | None = None
    performed_by: str | None = None


class ResolveTicketRequest(BaseModel):
    resolution_note: str | None = None
    agent_name: str | None = None


class CloseTicketRequest(BaseModel):
    agent_name: str | None = None


class ReasonRequest(BaseModel):
    reason: str | None = None
    agent_name: str | None = None


class TicketCommentRequest(BaseModel):
    content: str = Field(..., min_length=1)
    is_internal: bool = False
    author_name: str = Field(..., min_length=1, max_length=255)
    author_email: str = Field(default="", max_length=255)


class TicketAttachmentRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    mime_type: str | None = Field(default=None, max_length=100)
    file_size: int | None = Field(default=None, ge=0)
    url: str | None = Field(default=None, max_length=1024)
    uploaded_by: str | None = Field(default=None, max_length=255)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_number: str
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    category_id: str | None
    department_id: str | None
    reporter_id: str
    assigned_to_id: str | None
    resolution_note: str | None
    due_date: datetime | None
    resolved_at: datetime | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime
    is_overdue: bool


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    action: str
    old_value: str | None
    new_value: str | None
    performed_by: str
    performed_at: datetime


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_audit_response(entry: AuditLogEntry) -> AuditLogResponse:
    return AuditLogResponse.model_validate(entry)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.create_ticket(
        title=payload.title,
        description=payload.description,
        reporter_id=payload.reporter_id,
        priority=payload.priority,
        category_id=payload.category_id,
        department_id=payload.department_id,
        performed_by=payload.performed_by,
    )
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    assigned_to_id: str | None = Query(default=None),
    category_id: str | None = Query(default=None),
) -> list[TicketResponse]:
    tickets = await service.list_tickets(
        status=status_filter,
        priority=priority,
        assigned_to_id=assigned_to_id,
        category_id=category_id,
    )
    return [_to_response(ticket) for ticket in tickets]


@router.get("/overdue", response_model=list[TicketResponse], summary="Open tickets past their due date")
async def list_overdue_tickets(dashboard: DashboardServiceDep) -> list[TicketResponse]:
    tickets = await dashboard.get_overdue_tickets()
    return [_to_response(ticket) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketResponse:
    return _to_response(await service.get_ticket(ticket_id))


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(ticket_id: str, payload: TicketUpdateRequest, service: TicketServiceDep) -> TicketResponse:
    changes = payload.model_dump(exclude_unset=True, exclude={"performed_by"})
    ticket = await service.update_ticket(ticket_id, changes, performed_by=payload.performed_by)
    return _to_response(ticket)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(
    ticket_id: str,
    service: TicketServiceDep,
    performed_by: str | None = Query(default=None),
) -> None:
    await service.delete_ticket(ticket_id, performed_by=performed_by)


@router.post("/{ticket_id}/assign", response_model=TicketResponse)
async def assign_agent(ticket_id: str, payload: AssignAgentRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.assign_agent(
        ticket_id,
        payload.agent_id,
        remarks=payload.remarks,
        performed_by=payload.performed_by,
    )
    return _to_response(ticket)


@router.post("/{ticket_id}/priority", response_model=TicketResponse)
async def change_priority(
    ticket_id: str, payload: ChangePriorityRequest, service: TicketServiceDep
) -> TicketResponse:
    ticket = await service.change_priority(
        ticket_id,
        payload.priority,
        reason=payload.reason,
        performed_by=payload.performed_by,
    )
    return _to_response(ticket)


@router.post("/{ticket_id}/hold", response_model=TicketResponse)
async def hold_ticket(ticket_id: str, payload: ReasonRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.hold_ticket(ticket_id, reason=payload.reason, agent_name=payload.agent_name)
    return _to_response(ticket)


@router.post("/{ticket_id}/resolve", response_model=TicketResponse)
async def resolve_ticket(
    ticket_id: str, payload: ResolveTicketRequest, service: TicketServiceDep
) -> TicketResponse:
    ticket = await service.resolve_ticket(
        ticket_id,
        resolution_note=payload.resolution_note,
        agent_name=payload.agent_name,
    )
    return _to_response(ticket)


@router.post("/{ticket_id}/close", response_model=TicketResponse)
async def close_ticket(
    ticket_id: str, service: TicketServiceDep, payload: CloseTicketRequest | None = None
) -> TicketResponse:
    agent_name = payload.agent_name if payload is not None else None
    return _to_response(await service.close_ticket(ticket_id, agent_name=agent_name))


@router.post("/{ticket_id}/escalate", response_model=TicketResponse)
async def escalate_ticket(ticket_id: str, payload: ReasonRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.escalate_ticket(ticket_id, reason=payload.reason, agent_name=payload.agent_name)
    return _to_response(ticket)


@router.post("/{ticket_id}/reopen", response_model=TicketResponse)
async def reopen_ticket(ticket_id: str, payload: ReasonRequest, service: TicketServiceDep) -> TicketResponse:
    ticket = await service.reopen_ticket(ticket_id, reason=payload.reason, agent_name=payload.agent_name)
    return _to_response(ticket)


@router.get("/{ticket_id}/audit", response_model=list[AuditLogResponse])
async def get_ticket_audit(ticket_id: str, service: TicketServiceDep) -> list[AuditLogResponse]:
    entries = await service.get_audit_log(ticket_id)
    return [_to_audit_response(entry) for entry in entries]


@router.get("/{ticket_id}/comments", response_model=list[CommentResponse])
async def list_ticket_comments(
    ticket_id: str,
    service: TicketServiceDep,
    include_internal: bool = Query(default=True),
) -> list[CommentResponse]:
    comments = await service.list_comments(ticket_id, include_internal=include_internal)
    return [CommentResponse.model_validate(comment) for comment in comments]


@router.post("/{ticket_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_ticket_comment(
    ticket_id: str, payload: TicketCommentRequest, service: TicketServiceDep
) -> CommentResponse:
    comment = await service.add_comment(ticket_id, **payload.model_dump())
    return CommentResponse.model_validate(comment)


@router.get("/{ticket_id}/attachments", response_model=list[AttachmentResponse])
async def list_ticket_attachments(ticket_id: str, service: TicketServiceDep) -> list[AttachmentResponse]:
    attachments = await service.list_attachments(ticket_id)
    return [AttachmentResponse.model_validate(item) for item in attachments]


@router.post(
    "/{ticket_id}/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED
)
async def add_ticket_attachment(
    ticket_id: str, payload: TicketAttachmentRequest, service: TicketServiceDep
) -> AttachmentResponse:
    attachment = await service.add_attachment(ticket_id, **payload.model_dump())
    return AttachmentResponse.model_validate(attachment)
