from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func
from sqlmodel import select

from helpdesk.db.models import AttachmentTable, CommentTable
from helpdesk.errors import ConflictError, NotFoundError, ValidationError
from helpdesk.tickets import AuditRecorder, TicketService, TicketStatus
from helpdesk.tickets.state import TicketPriority


async def _actions(service: TicketService, ticket_id: str) -> list[str]:
    return [entry.action for entry in await service.get_audit_log(ticket_id)]


@pytest.mark.asyncio
async def test_create_ticket_assigns_number_due_date_and_audit(ticket_service, make_ticket):
    ticket = await make_ticket()

    assert ticket.ticket_number == "TKT-2024-00001"
    assert ticket.status is TicketStatus.OPEN
    assert ticket.priority is TicketPriority.MEDIUM
    assert ticket.due_date == ticket.created_at + timedelta(hours=24)
    assert ticket.version == 1
    assert ticket.is_overdue is False

    entries = await ticket_service.get_audit_log(ticket.id)
    assert len(entries) == 1
    assert entries[0].action == "Ticket Created"
    assert entries[0].old_value is None
    assert entries[0].new_value == "OPEN"
    assert entries[0].performed_by == "System"


@pytest.mark.asyncio
async def test_ticket_numbers_are_sequential_and_restart_each_year(make_ticket, clock, seeded):
    first = await make_ticket()
    second = await make_ticket(category_id=seeded.general_category_id)
    assert [first.ticket_number, second.ticket_number] == ["TKT-2024-00001", "TKT-2024-00002"]
    assert second.due_date is None

    clock.now = datetime(2025, 1, 1, 0, 0, 5, tzinfo=timezone.utc)
    third = await make_ticket()
    assert third.ticket_number == "TKT-2025-00001"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"title": "VPN"}, "title must be at least 5"),
        ({"title": "    VPN    "}, "title must be at least 5"),
        ({"description": "too short"}, "description must be at least 10"),
        ({"reporter_id": None}, "Reporter is required"),
        ({"reporter_id": "ghost"}, "Unknown reporter"),
        ({"priority": "URGENT"}, "Invalid priority"),
        ({"category_id": "missing"}, "Unknown category"),
        ({"department_id": "missing"}, "Unknown department"),
    ],
)
async def test_create_ticket_rejects_invalid_input(ticket_service, make_ticket, overrides, message):
    with pytest.raises(ValidationError, match=message):
        await make_ticket(**overrides)

    assert await ticket_service.list_tickets() == []


@pytest.mark.asyncio
async def test_assign_agent_moves_ticket_in_progress(ticket_service, make_ticket, seeded):
    ticket = await make_ticket()

    assigned = await ticket_service.assign_agent(ticket.id, seeded.agent_id, remarks="Dispatcher")

    assert assigned.status is TicketStatus.IN_PROGRESS
    assert assigned.assigned_to_id == seeded.agent_id
    assert assigned.version == 2
    entry = (await ticket_service.get_audit_log(ticket.id))[-1]
    assert entry.action == "Agent Assigned"
    assert entry.old_value == "Unassigned"
    assert entry.new_value == "Agent: Sam Agent"
    assert entry.performed_by == "Dispatcher"

    reassigned = await ticket_service.assign_agent(ticket.id, seeded.senior_agent_id)
    assert reassigned.assigned_to_id == seeded.senior_agent_id
    entry = (await ticket_service.get_audit_log(ticket.id))[-1]
    assert entry.old_value == f"Agent: {seeded.agent_id}"
    assert entry.performed_by == "System"


@pytest.mark.asyncio
async def test_assign_agent_requires_an_active_agent(ticket_service, make_ticket, seeded):
    ticket = await make_ticket()

    with pytest.raises(NotFoundError):
        await ticket_service.assign_agent(ticket.id, seeded.inactive_agent_id)
    with pytest.raises(NotFoundError):
        await ticket_service.assign_agent(ticket.id, "missing-agent")
    with pytest.raises(NotFoundError, match="Ticket not found"):
        await ticket_service.assign_agent("missing-ticket", seeded.agent_id)

    unchanged = await ticket_service.get_ticket(ticket.id)
    assert unchanged.status is TicketStatus.OPEN
    assert unchanged.assigned_to_id is None
    assert await _actions(ticket_service, ticket.id) == ["Ticket Created"]


@pytest.mark.asyncio
async def test_resolve_requires_a_meaningful_note(ticket_service, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ValidationError, match="at least 10 characters"):
        await ticket_service.resolve_ticket(ticket.id, resolution_note="fixed")

    unchanged = await ticket_service.get_ticket(ticket.id)
    assert unchanged.status is TicketStatus.OPEN
    assert unchanged.version == 1
    assert await ticket_service.list_comments(ticket.id) == []


@pytest.mark.asyncio
async def test_full_lifecycle_records_every_step(ticket_service, make_ticket, seeded):
    ticket = await make_ticket()
    await ticket_service.assign_agent(ticket.id, seeded.agent_id)

    resolved = await ticket_service.resolve_ticket(
        ticket.id, resolution_note="Replaced the faulty access point", agent_name="Sam Agent"
    )
    assert resolved.status is TicketStatus.RESOLVED
    assert resolved.resolved_at is not None
    assert resolved.resolution_note == "Replaced the faulty access point"

    comments = await ticket_service.list_comments(ticket.id)
    assert [comment.content for comment in comments] == [
        "Ticket resolved. Note: Replaced the faulty access point"
    ]
    assert comments[0].author_name == "Sam Agent"
    assert comments[0].is_internal is False

    with pytest.raises(ConflictError, match="already resolved"):
        await ticket_service.resolve_ticket(ticket.id, resolution_note="Resolved a second time")

    closed = await ticket_service.close_ticket(ticket.id)
    assert closed.status is TicketStatus.CLOSED
    assert closed.closed_at is not None

    assert await _actions(ticket_service, ticket.id) == [
        "Ticket Created",
        "Agent Assigned",
        "Ticket Resolved",
        "Ticket Closed",
    ]


@pytest.mark.asyncio
async def test_resolve_comment_defaults_to_support_agent(ticket_service, make_ticket):
    ticket = await make_ticket()

    await ticket_service.resolve_ticket(ticket.id, resolution_note="Cleared the DNS cache")

    comments = await ticket_service.list_comments(ticket.id)
    assert comments[0].author_name == "Support Agent"


@pytest.mark.asyncio
async def test_close_requires_a_resolved_ticket(ticket_service, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ConflictError, match="Only resolved tickets can be closed"):
        await ticket_service.close_ticket(ticket.id)

    assert (await ticket_service.get_ticket(ticket.id)).status is TicketStatus.OPEN


@pytest.mark.asyncio
async def test_closed_ticket_refuses_edits(ticket_service, make_ticket, seeded):
    ticket = await make_ticket()
    await ticket_service.resolve_ticket(ticket.id, resolution_note="Restarted the VPN gateway")
    await ticket_service.close_ticket(ticket.id)

    with pytest.raises(ConflictError, match="is closed and cannot be modified"):
        await ticket_service.update_ticket(ticket.id, {"title": "A brand new title"})
    with pytest.raises(ConflictError, match="is closed and cannot be modified"):
        await ticket_service.update_ticket(ticket.id, {})
    with pytest.raises(ConflictError, match="closed ticket"):
        await ticket_service.assign_agent(ticket.id, seeded.agent_id)
    with pytest.raises(ConflictError, match="Cannot change priority of a closed ticket"):
        await ticket_service.change_priority(ticket.id, "HIGH")
    with pytest.raises(ConflictError, match="Ticket is already closed"):
        await ticket_service.close_ticket(ticket.id)


@pytest.mark.asyncio
async def test_reopen_clears_resolution_fields(ticket_service, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ConflictError, match="Only resolved or closed tickets can be reopened"):
        await ticket_service.reopen_ticket(ticket.id, reason="It broke again")

    await ticket_service.resolve_ticket(ticket.id, resolution_note="Updated the VPN client")
    await ticket_service.close_ticket(ticket.id)

    with pytest.raises(ValidationError, match="reason must be provided"):
        await ticket_service.reopen_ticket(ticket.id, reason="no")

    reopened = await ticket_service.reopen_ticket(ticket.id, reason="Issue came back", agent_name="Jane")
    assert reopened.status is TicketStatus.OPEN
    assert reopened.resolved_at is None
    assert reopened.closed_at is None
    assert reopened.resolution_note is None

    comments = await ticket_service.list_comments(ticket.id, include_internal=False)
    assert comments[-1].content == "Ticket reopened. Reason: Issue came back"
    assert comments[-1].author_name == "Jane"
    entry = (await ticket_service.get_audit_log(ticket.id))[-1]
    assert (entry.action, entry.old_value, entry.new_value) == ("Ticket Reopened", "CLOSED", "OPEN")


@pytest.mark.asyncio
async def test_escalate_raises_priority_and_leaves_internal_note(ticket_service, make_ticket):
    ticket = await make_ticket(priority="LOW")

    escalated = await ticket_service.escalate_ticket(ticket.id)

    assert escalated.priority is TicketPriority.MEDIUM
    assert escalated.status is TicketStatus.IN_PROGRESS
    entry = (await ticket_service.get_audit_log(ticket.id))[-1]
    assert (entry.old_value, entry.new_value) == ("Priority: LOW", "Priority: MEDIUM")

    all_comments = await ticket_service.list_comments(ticket.id)
    assert all_comments[0].content == "Ticket escalated. Reason: No reason provided"
    assert all_comments[0].is_internal is True
    assert await ticket_service.list_comments(ticket.id, include_internal=False) == []


@pytest.mark.asyncio
async def test_escalate_stops_at_critical_and_skips_finished_tickets(ticket_service, make_ticket):
    ticket = await make_ticket(priority="CRITICAL")

    escalated = await ticket_service.escalate_ticket(ticket.id, reason="Whole floor offline")
    assert escalated.priority is TicketPriority.CRITICAL

    await ticket_service.resolve_ticket(ticket.id, resolution_note="Switch replaced on floor 3")
    with pytest.raises(ConflictError, match="Cannot escalate a resolved or closed ticket"):
        await ticket_service.escalate_ticket(ticket.id)


@pytest.mark.asyncio
async def test_hold_pauses_work_until_resolved(ticket_service, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ValidationError):
        await ticket_service.hold_ticket(ticket.id, reason="")

    held = await ticket_service.hold_ticket(ticket.id, reason="Waiting for vendor", agent_name="Sam")
    assert held.status is TicketStatus.ON_HOLD
    comments = await ticket_service.list_comments(ticket.id)
    assert comments[0].is_internal is True
    assert comments[0].content == "Ticket put on hold. Reason: Waiting for vendor"

    with pytest.raises(ConflictError, match="already on hold"):
        await ticket_service.hold_ticket(ticket.id, reason="Still waiting")

    resolved = await ticket_service.resolve_ticket(ticket.id, resolution_note="Vendor shipped the fix")
    assert resolved.status is TicketStatus.RESOLVED


@pytest.mark.asyncio
async def test_change_priority_validates_before_lookup(ticket_service, make_ticket):
    with pytest.raises(ValidationError, match="Invalid priority"):
        await ticket_service.change_priority("missing-ticket", "URGENT")

    ticket = await make_ticket()
    changed = await ticket_service.change_priority(ticket.id, "HIGH", reason="Executive request")

    assert changed.priority is TicketPriority.HIGH
    assert changed.status is TicketStatus.OPEN
    entry = (await ticket_service.get_audit_log(ticket.id))[-1]
    assert (entry.action, entry.old_value, entry.new_value) == ("Priority Changed", "MEDIUM", "HIGH")
    assert entry.performed_by == "Executive request"


@pytest.mark.asyncio
async def test_update_ticket_records_only_real_changes(ticket_service, make_ticket, seeded):
    ticket = await make_ticket()

    same = await ticket_service.update_ticket(ticket.id, {"title": ticket.title})
    assert same.version == 1
    assert await _actions(ticket_service, ticket.id) == ["Ticket Created"]

    updated = await ticket_service.update_ticket(
        ticket.id,
        {"title": "VPN drops on office Wi-Fi", "department_id": seeded.department_id},
        performed_by="Jane",
    )
    assert updated.title == "VPN drops on office Wi-Fi"
    assert updated.department_id == seeded.department_id
    assert updated.version == 2

    entry = (await ticket_service.get_audit_log(ticket.id))[-1]
    assert entry.action == "Ticket Updated"
    assert entry.new_value == f"department_id={seeded.department_id}, title=VPN drops on office Wi-Fi"
    assert entry.performed_by == "Jane"


@pytest.mark.asyncio
async def test_update_ticket_rejects_bad_fields(ticket_service, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ValidationError, match="cannot be updated directly"):
        await ticket_service.update_ticket(ticket.id, {"status": "CLOSED"})
    with pytest.raises(ValidationError, match="No fields provided"):
        await ticket_service.update_ticket(ticket.id, {})
    with pytest.raises(ValidationError, match="Unknown category"):
        await ticket_service.update_ticket(ticket.id, {"category_id": "missing"})
    with pytest.raises(ValidationError, match="description must be at least 10"):
        await ticket_service.update_ticket(ticket.id, {"description": "short"})
    with pytest.raises(NotFoundError):
        await ticket_service.update_ticket("missing-ticket", {"title": "Valid title"})


@pytest.mark.asyncio
async def test_delete_removes_children_but_keeps_audit(ticket_service, make_ticket, session_factory):
    ticket = await make_ticket()
    await ticket_service.add_comment(ticket.id, content="Screenshot attached", author_name="Jane")
    await ticket_service.add_attachment(ticket.id, file_name="vpn.png", mime_type="image/png", file_size=2048)

    await ticket_service.delete_ticket(ticket.id, performed_by="Admin")

    with pytest.raises(NotFoundError):
        await ticket_service.get_ticket(ticket.id)
    async with session_factory() as session:
        comments = await session.scalar(
            select(func.count()).select_from(CommentTable).where(CommentTable.ticket_id == ticket.id)
        )
        attachments = await session.scalar(
            select(func.count()).select_from(AttachmentTable).where(AttachmentTable.ticket_id == ticket.id)
        )
    assert comments == 0
    assert attachments == 0

    entries = await ticket_service.get_audit_log(ticket.id)
    assert [entry.action for entry in entries] == ["Ticket Created", "Ticket Deleted"]
    assert entries[-1].old_value == ticket.ticket_number
    assert entries[-1].performed_by == "Admin"

    with pytest.raises(NotFoundError):
        await ticket_service.delete_ticket(ticket.id)


@pytest.mark.asyncio
async def test_comments_and_attachments_require_an_existing_ticket(ticket_service, make_ticket):
    with pytest.raises(NotFoundError):
        await ticket_service.add_comment("missing-ticket", content="Hello there", author_name="Jane")
    with pytest.raises(NotFoundError):
        await ticket_service.add_attachment("missing-ticket", file_name="log.txt")
    with pytest.raises(NotFoundError):
        await ticket_service.list_attachments("missing-ticket")

    ticket = await make_ticket()
    with pytest.raises(ValidationError):
        await ticket_service.add_comment(ticket.id, content="   ", author_name="Jane")

    await ticket_service.add_attachment(ticket.id, file_name=" router.log ", url="https://files.example.com/1")
    attachments = await ticket_service.list_attachments(ticket.id)
    assert [item.file_name for item in attachments] == ["router.log"]


@pytest.mark.asyncio
async def test_overdue_flag_tracks_sla_and_status(ticket_service, make_ticket, clock):
    ticket = await make_ticket()
    assert (await ticket_service.get_ticket(ticket.id)).is_overdue is False

    clock.advance(hours=25)
    assert (await ticket_service.get_ticket(ticket.id)).is_overdue is True
    listed = await ticket_service.list_tickets()
    assert listed[0].is_overdue is True

    resolved = await ticket_service.resolve_ticket(ticket.id, resolution_note="Late but fixed now")
    assert resolved.is_overdue is False


@pytest.mark.asyncio
async def test_list_tickets_filters_and_orders_newest_first(ticket_service, make_ticket, seeded):
    first = await make_ticket()
    second = await make_ticket(priority="HIGH", category_id=seeded.general_category_id)
    await ticket_service.assign_agent(second.id, seeded.agent_id)

    everything = await ticket_service.list_tickets()
    assert [ticket.id for ticket in everything] == [second.id, first.id]

    in_progress = await ticket_service.list_tickets(status=TicketStatus.IN_PROGRESS)
    assert [ticket.id for ticket in in_progress] == [second.id]
    assert await ticket_service.list_tickets(priority=TicketPriority.HIGH, assigned_to_id=seeded.agent_id)
    assert [t.id for t in await ticket_service.list_tickets(category_id=seeded.network_category_id)] == [first.id]


@pytest.mark.asyncio
async def test_stale_version_is_rejected(ticket_repository, ticket_service, make_ticket):
    ticket = await make_ticket()

    with pytest.raises(ConflictError, match="modified concurrently"):
        async with ticket_repository.unit_of_work() as session:
            await ticket_repository.apply_changes(
                session, ticket.id, expected_version=ticket.version + 1, changes={"title": "Stale write"}
            )

    current = await ticket_service.get_ticket(ticket.id)
    assert current.title == ticket.title
    assert current.version == 1


class FailingAuditRecorder(AuditRecorder):
    def append(self, session, **kwargs):
        raise RuntimeError("audit store unavailable")


@pytest.mark.asyncio
async def test_action_rolls_back_when_audit_write_fails(
    ticket_service, ticket_repository, session_factory, make_ticket, clock
):
    ticket = await make_ticket()
    broken = TicketService(ticket_repository, FailingAuditRecorder(session_factory), clock=clock)

    with pytest.raises(RuntimeError, match="audit store unavailable"):
        await broken.resolve_ticket(ticket.id, resolution_note="This should not stick")

    current = await ticket_service.get_ticket(ticket.id)
    assert current.status is TicketStatus.OPEN
    assert current.resolution_note is None
    assert await ticket_service.list_comments(ticket.id) == []
