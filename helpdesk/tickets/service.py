from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.logging import get_tracer
from helpdesk.db.models import (
    AttachmentTable,
    CategoryTable,
    CommentTable,
    DepartmentTable,
    EmployeeTable,
    TicketTable,
)
from helpdesk.errors import NotFoundError, ValidationError

from .audit import AuditRecorder
from .models import AuditLogEntry, Ticket
from .repository import TicketRepository
from .sla import compute_due_date
from .state import TicketAction, TicketPriority, TicketStateMachine, TicketStatus, escalate_priority

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 5
MIN_DESCRIPTION_LENGTH = 10
MIN_RESOLUTION_NOTE_LENGTH = 10
MIN_REASON_LENGTH = 5

EDITABLE_FIELDS = frozenset({"title", "description", "priority", "category_id", "department_id"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class SystemComment:
    """Comment written on the ticket as a side effect of an action."""

    content: str
    author_name: str
    is_internal: bool = False


@dataclass(slots=True)
class TicketChange:
    """Everything one lifecycle action writes besides the status itself."""

    audit_action: str
    old_value: Any
    new_value: Any
    performed_by: str | None
    fields: dict[str, Any] = field(default_factory=dict)
    comment: SystemComment | None = None


ChangeBuilder = Callable[[AsyncSession, TicketTable, datetime], Awaitable[TicketChange]]


class TicketService:
    """Ticket lifecycle controller.

    Each mutating operation runs as an explicit pipeline inside a single unit
    of work: load and lock the ticket, check the state machine, validate the
    action's input, write the changes with an optimistic version check, add
    any side-effect comment and append the audit entry. The reloaded ticket is
    returned so callers see server-computed fields.
    """

    def __init__(
        self,
        repository: TicketRepository,
        audit: AuditRecorder,
        *,
        state_machine: type[TicketStateMachine] = TicketStateMachine,
        default_performer: str = "System",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._audit = audit
        self._state_machine = state_machine
        self._default_performer = default_performer
        self._clock = clock
        self._tracer = get_tracer(__name__)

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.get_ticket(ticket_id, now=self._clock())
        if ticket is None:
            raise NotFoundError(f"Ticket not found: {ticket_id}")
        return ticket

    async def list_tickets(
        self,
        *,
        status: TicketStatus | None = None,
        priority: TicketPriority | None = None,
        assigned_to_id: str | None = None,
        category_id: str | None = None,
    ) -> list[Ticket]:
        return await self._repository.list_tickets(
            now=self._clock(),
            status=status,
            priority=priority,
            assigned_to_id=assigned_to_id,
            category_id=category_id,
        )

    async def get_audit_log(self, ticket_id: str) -> list[AuditLogEntry]:
        # Entries of deleted tickets stay readable.
        return await self._audit.list_for_ticket(ticket_id)

    async def create_ticket(
        self,
        *,
        title: str | None,
        description: str | None,
        reporter_id: str | None,
        priority: TicketPriority | str = TicketPriority.MEDIUM,
        category_id: str | None = None,
        department_id: str | None = None,
        performed_by: str | None = None,
    ) -> Ticket:
        _require_length(title, MIN_TITLE_LENGTH, "Ticket title must be at least 5 characters long")
        _require_length(
            description, MIN_DESCRIPTION_LENGTH, "Ticket description must be at least 10 characters long"
        )
        if not reporter_id:
            raise ValidationError("Reporter is required to create a ticket")
        priority_value = _parse_priority(priority)

        now = self._clock()
        ticket_id = str(uuid.uuid4())
        with self._tracer.start_as_current_span("ticket.create") as span:
            async with self._repository.unit_of_work() as session:
                await self._require_reference(session, EmployeeTable, reporter_id, "reporter")
                category = await self._load_category(session, category_id)
                if department_id is not None:
                    await self._require_reference(session, DepartmentTable, department_id, "department")

                ticket_number = await self._repository.next_ticket_number(session, now.year)
                status = self._state_machine.initial_state()
                await self._repository.insert_ticket(
                    session,
                    TicketTable(
                        id=ticket_id,
                        ticket_number=ticket_number,
                        title=title.strip(),
                        description=description.strip(),
                        status=status.value,
                        priority=priority_value.value,
                        category_id=category_id,
                        department_id=department_id,
                        reporter_id=reporter_id,
                        due_date=compute_due_date(now, category.sla_hours if category else None),
                        version=1,
                        created_at=now,
                        updated_at=now,
                    ),
                )
                self._audit.append(
                    session,
                    ticket_id=ticket_id,
                    action="Ticket Created",
                    old_value=None,
                    new_value=status,
                    performed_by=performed_by or self._default_performer,
                    performed_at=now,
                )
            span.set_attribute("ticket.number", ticket_number)
        logger.info("Created ticket %s (%s)", ticket_number, ticket_id)
        return await self.get_ticket(ticket_id)

    async def update_ticket(
        self,
        ticket_id: str,
        changes: Mapping[str, Any],
        *,
        performed_by: str | None = None,
    ) -> Ticket:
        """Generic edit of descriptive fields; refused outright on closed tickets."""

        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            normalized = _normalize_edit(changes)
            if normalized.get("category_id") is not None:
                await self._require_reference(session, CategoryTable, normalized["category_id"], "category")
            if normalized.get("department_id") is not None:
                await self._require_reference(session, DepartmentTable, normalized["department_id"], "department")
            diff = {key: value for key, value in normalized.items() if getattr(row, key) != value}
            return TicketChange(
                audit_action="Ticket Updated",
                old_value=_describe(row, diff),
                new_value=", ".join(f"{key}={value}" for key, value in sorted(diff.items())),
                performed_by=performed_by,
                fields=diff,
            )

        return await self._transition(ticket_id, TicketAction.UPDATE, build)

    async def assign_agent(
        self,
        ticket_id: str,
        agent_id: str,
        *,
        remarks: str | None = None,
        performed_by: str | None = None,
    ) -> Ticket:
        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            agent = await self._repository.get_active_agent(session, agent_id)
            if agent is None:
                raise NotFoundError(f"Active agent not found: {agent_id}")
            previous = row.assigned_to_id
            return TicketChange(
                audit_action="Agent Assigned",
                old_value=f"Agent: {previous}" if previous else "Unassigned",
                new_value=f"Agent: {agent.name}",
                performed_by=performed_by or remarks,
                fields={"assigned_to_id": agent.id},
            )

        return await self._transition(ticket_id, TicketAction.ASSIGN, build)

    async def change_priority(
        self,
        ticket_id: str,
        priority: TicketPriority | str,
        *,
        reason: str | None = None,
        performed_by: str | None = None,
    ) -> Ticket:
        new_priority = _parse_priority(priority)

        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            return TicketChange(
                audit_action="Priority Changed",
                old_value=row.priority,
                new_value=new_priority,
                performed_by=performed_by or reason,
                fields={"priority": new_priority.value},
            )

        return await self._transition(ticket_id, TicketAction.CHANGE_PRIORITY, build)

    async def hold_ticket(
        self,
        ticket_id: str,
        *,
        reason: str | None,
        agent_name: str | None = None,
    ) -> Ticket:
        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            _require_length(reason, MIN_REASON_LENGTH, "A reason must be provided to put a ticket on hold")
            return TicketChange(
                audit_action="Ticket On Hold",
                old_value=row.status,
                new_value=TicketStatus.ON_HOLD,
                performed_by=agent_name,
                comment=SystemComment(
                    content=f"Ticket put on hold. Reason: {reason.strip()}",
                    author_name=agent_name or self._default_performer,
                    is_internal=True,
                ),
            )

        return await self._transition(ticket_id, TicketAction.HOLD, build)

    async def resolve_ticket(
        self,
        ticket_id: str,
        *,
        resolution_note: str | None,
        agent_name: str | None = None,
    ) -> Ticket:
        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            _require_length(
                resolution_note,
                MIN_RESOLUTION_NOTE_LENGTH,
                "Resolution note must be at least 10 characters long",
            )
            return TicketChange(
                audit_action="Ticket Resolved",
                old_value=row.status,
                new_value=TicketStatus.RESOLVED,
                performed_by=agent_name,
                fields={"resolved_at": now, "resolution_note": resolution_note},
                comment=SystemComment(
                    content=f"Ticket resolved. Note: {resolution_note}",
                    author_name=agent_name or "Support Agent",
                ),
            )

        return await self._transition(ticket_id, TicketAction.RESOLVE, build)

    async def close_ticket(self, ticket_id: str, *, agent_name: str | None = None) -> Ticket:
        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            return TicketChange(
                audit_action="Ticket Closed",
                old_value=row.status,
                new_value=TicketStatus.CLOSED,
                performed_by=agent_name,
                fields={"closed_at": now},
            )

        return await self._transition(ticket_id, TicketAction.CLOSE, build)

    async def escalate_ticket(
        self,
        ticket_id: str,
        *,
        reason: str | None = None,
        agent_name: str | None = None,
    ) -> Ticket:
        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            new_priority = escalate_priority(row.priority)
            return TicketChange(
                audit_action="Ticket Escalated",
                old_value=f"Priority: {row.priority}",
                new_value=f"Priority: {new_priority.value}",
                performed_by=agent_name,
                fields={"priority": new_priority.value},
                comment=SystemComment(
                    content=f"Ticket escalated. Reason: {reason or 'No reason provided'}",
                    author_name=agent_name or self._default_performer,
                    is_internal=True,
                ),
            )

        return await self._transition(ticket_id, TicketAction.ESCALATE, build)

    async def reopen_ticket(
        self,
        ticket_id: str,
        *,
        reason: str | None,
        agent_name: str | None = None,
    ) -> Ticket:
        async def build(session: AsyncSession, row: TicketTable, now: datetime) -> TicketChange:
            _require_length(reason, MIN_REASON_LENGTH, "A reason must be provided to reopen a ticket")
            return TicketChange(
                audit_action="Ticket Reopened",
                old_value=row.status,
                new_value=TicketStatus.OPEN,
                performed_by=agent_name,
                fields={"resolved_at": None, "closed_at": None, "resolution_note": None},
                comment=SystemComment(
                    content=f"Ticket reopened. Reason: {reason}",
                    author_name=agent_name or self._default_performer,
                ),
            )

        return await self._transition(ticket_id, TicketAction.REOPEN, build)

    async def delete_ticket(self, ticket_id: str, *, performed_by: str | None = None) -> None:
        """Remove a ticket with its comments and attachments; the audit trail stays."""

        now = self._clock()
        async with self._repository.unit_of_work() as session:
            row = await self._repository.lock_ticket(session, ticket_id)
            if row is None:
                raise NotFoundError(f"Ticket not found: {ticket_id}")
            ticket_number = row.ticket_number
            await self._repository.delete_ticket(session, ticket_id)
            self._audit.append(
                session,
                ticket_id=ticket_id,
                action="Ticket Deleted",
                old_value=ticket_number,
                new_value=None,
                performed_by=performed_by,
                performed_at=now,
            )
        logger.info("Deleted ticket %s (%s)", ticket_number, ticket_id)

    async def add_comment(
        self,
        ticket_id: str,
        *,
        content: str,
        author_name: str,
        author_email: str = "",
        is_internal: bool = False,
    ) -> CommentTable:
        if not content or not content.strip():
            raise ValidationError("Comment content must not be empty")
        comment = CommentTable(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            content=content,
            is_internal=is_internal,
            author_name=author_name,
            author_email=author_email,
            created_at=self._clock(),
        )
        async with self._repository.unit_of_work() as session:
            if not await self._repository.exists(session, TicketTable, ticket_id):
                raise NotFoundError(f"Ticket not found: {ticket_id}")
            self._repository.add_comment(session, comment)
        return comment

    async def list_comments(self, ticket_id: str, *, include_internal: bool = True) -> list[CommentTable]:
        await self.get_ticket(ticket_id)
        return await self._repository.list_comments(ticket_id, include_internal=include_internal)

    async def add_attachment(
        self,
        ticket_id: str,
        *,
        file_name: str,
        mime_type: str | None = None,
        file_size: int | None = None,
        url: str | None = None,
        uploaded_by: str | None = None,
    ) -> AttachmentTable:
        if not file_name or not file_name.strip():
            raise ValidationError("Attachment file name must not be empty")
        attachment = AttachmentTable(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            file_name=file_name.strip(),
            mime_type=mime_type,
            file_size=file_size,
            url=url,
            uploaded_by=uploaded_by,
            created_at=self._clock(),
        )
        async with self._repository.unit_of_work() as session:
            if not await self._repository.exists(session, TicketTable, ticket_id):
                raise NotFoundError(f"Ticket not found: {ticket_id}")
            self._repository.add_attachment(session, attachment)
        return attachment

    async def list_attachments(self, ticket_id: str) -> list[AttachmentTable]:
        await self.get_ticket(ticket_id)
        return await self._repository.list_attachments(ticket_id)

    async def _transition(self, ticket_id: str, action: TicketAction, build: ChangeBuilder) -> Ticket:
        now = self._clock()
        with self._tracer.start_as_current_span(f"ticket.{action.value}") as span:
            span.set_attribute("ticket.id", ticket_id)
            async with self._repository.unit_of_work() as session:
                row = await self._repository.lock_ticket(session, ticket_id)
                if row is None:
                    raise NotFoundError(f"Ticket not found: {ticket_id}")
                current = TicketStatus(row.status)
                target = self._state_machine.assert_action(action, current, ticket_label=row.ticket_number)
                ticket_number = row.ticket_number
                change = await build(session, row, now)

                if action is TicketAction.UPDATE and not change.fields:
                    # nothing differs; skip the write and the audit entry
                    return self._repository.to_ticket(row, now)

                values = dict(change.fields)
                values["updated_at"] = now
                if target is not current:
                    values["status"] = target.value
                await self._repository.apply_changes(
                    session, ticket_id, expected_version=row.version, changes=values
                )
                if change.comment is not None:
                    self._repository.add_comment(
                        session,
                        CommentTable(
                            id=str(uuid.uuid4()),
                            ticket_id=ticket_id,
                            content=change.comment.content,
                            is_internal=change.comment.is_internal,
                            author_name=change.comment.author_name,
                            author_email="",
                            created_at=now,
                        ),
                    )
                self._audit.append(
                    session,
                    ticket_id=ticket_id,
                    action=change.audit_action,
                    old_value=change.old_value,
                    new_value=change.new_value,
                    performed_by=change.performed_by,
                    performed_at=now,
                )
            span.set_attribute("ticket.status", target.value)
        logger.info("%s: %s (%s -> %s)", change.audit_action, ticket_number, current.value, target.value)
        return await self.get_ticket(ticket_id)

    async def _load_category(self, session: AsyncSession, category_id: str | None) -> CategoryTable | None:
        if category_id is None:
            return None
        category = await session.get(CategoryTable, category_id)
        if category is None:
            raise ValidationError(f"Unknown category: {category_id}")
        return category

    async def _require_reference(self, session: AsyncSession, table: type, entity_id: str, label: str) -> None:
        if not await self._repository.exists(session, table, entity_id):
            raise ValidationError(f"Unknown {label}: {entity_id}")


def _require_length(value: str | None, minimum: int, message: str) -> None:
    if not value or len(value.strip()) < minimum:
        raise ValidationError(message)


def _parse_priority(value: TicketPriority | str | None) -> TicketPriority:
    try:
        return TicketPriority(value)
    except ValueError:
        allowed = ", ".join(item.value for item in TicketPriority)
        raise ValidationError(f"Invalid priority. Must be one of: {allowed}") from None


def _describe(row: TicketTable, diff: Mapping[str, Any]) -> str:
    return ", ".join(f"{key}={getattr(row, key)}" for key in sorted(diff))


def _normalize_edit(changes: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
    if not changes:
        raise ValidationError("No fields provided for update")

    normalized = dict(changes)
    if "title" in normalized:
        _require_length(normalized["title"], MIN_TITLE_LENGTH, "Ticket title must be at least 5 characters long")
        normalized["title"] = normalized["title"].strip()
    if "description" in normalized:
        _require_length(
            normalized["description"],
            MIN_DESCRIPTION_LENGTH,
            "Ticket description must be at least 10 characters long",
        )
        normalized["description"] = normalized["description"].strip()
    if "priority" in normalized:
        normalized["priority"] = _parse_priority(normalized["priority"]).value
    return normalized
