from __future__ import annotations

import pytest

from helpdesk.tickets import DashboardStats


@pytest.mark.asyncio
async def test_dashboard_stats_count_each_bucket(dashboard_service, ticket_service, make_ticket, seeded, clock):
    assert await dashboard_service.get_dashboard_stats() == DashboardStats()

    await make_ticket()
    critical = await make_ticket(priority="CRITICAL", category_id=seeded.general_category_id)
    await ticket_service.assign_agent(critical.id, seeded.agent_id)
    minor = await make_ticket(priority="LOW", category_id=seeded.general_category_id)
    await ticket_service.resolve_ticket(minor.id, resolution_note="Reset the user's password")

    stats = await dashboard_service.get_dashboard_stats()
    assert stats == DashboardStats(
        total_tickets=3,
        open_tickets=1,
        in_progress_tickets=1,
        resolved_today=1,
        overdue_tickets=0,
        critical_tickets=1,
    )

    clock.advance(hours=25)
    await ticket_service.resolve_ticket(critical.id, resolution_note="Core switch firmware rolled back")
    await ticket_service.close_ticket(critical.id)

    stats = await dashboard_service.get_dashboard_stats()
    assert stats.overdue_tickets == 1
    assert stats.resolved_today == 0
    assert stats.critical_tickets == 0
    assert stats.in_progress_tickets == 0


@pytest.mark.asyncio
async def test_agent_tickets_sorted_by_severity_then_age(dashboard_service, ticket_service, make_ticket, seeded):
    low = await make_ticket(priority="LOW")
    critical = await make_ticket(priority="CRITICAL")
    high = await make_ticket(priority="HIGH")
    done = await make_ticket(priority="CRITICAL")
    other = await make_ticket(priority="HIGH")
    for ticket in (low, critical, high, done):
        await ticket_service.assign_agent(ticket.id, seeded.agent_id)
    await ticket_service.assign_agent(other.id, seeded.senior_agent_id)
    await ticket_service.resolve_ticket(done.id, resolution_note="Printer driver reinstalled")
    await ticket_service.close_ticket(done.id)

    tickets = await dashboard_service.get_agent_tickets(seeded.agent_id)

    assert [ticket.id for ticket in tickets] == [critical.id, high.id, low.id]
    assert await dashboard_service.get_agent_tickets("nobody") == []


@pytest.mark.asyncio
async def test_overdue_tickets_exclude_finished_work(dashboard_service, ticket_service, make_ticket, seeded, clock):
    low = await make_ticket(priority="LOW")
    high = await make_ticket(priority="HIGH")
    await make_ticket(priority="CRITICAL", category_id=seeded.general_category_id)

    assert await dashboard_service.get_overdue_tickets() == []

    clock.advance(hours=25)
    overdue = await dashboard_service.get_overdue_tickets()
    assert [ticket.id for ticket in overdue] == [high.id, low.id]
    assert all(ticket.is_overdue for ticket in overdue)

    await ticket_service.resolve_ticket(high.id, resolution_note="Cable replaced in the comms room")
    overdue = await dashboard_service.get_overdue_tickets()
    assert [ticket.id for ticket in overdue] == [low.id]
