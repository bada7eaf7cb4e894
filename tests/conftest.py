from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio

from helpdesk.db import create_engine, create_session_factory, ensure_schema
from helpdesk.db.models import AgentTable, CategoryTable, DepartmentTable, EmployeeTable
from helpdesk.tickets import AuditRecorder, DashboardService, TicketRepository, TicketService


class TickingClock:
    """Deterministic clock that moves one second forward on every read."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def engine():
    engine = create_engine("sqlite:///:memory:")
    await ensure_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def ticket_repository(session_factory) -> TicketRepository:
    return TicketRepository(session_factory)


@pytest.fixture
def audit_recorder(session_factory) -> AuditRecorder:
    return AuditRecorder(session_factory)


@pytest.fixture
def ticket_service(ticket_repository, audit_recorder, clock) -> TicketService:
    return TicketService(ticket_repository, audit_recorder, clock=clock)


@pytest.fixture
def dashboard_service(session_factory, clock) -> DashboardService:
    return DashboardService(session_factory, clock=clock)


@pytest_asyncio.fixture
async def seeded(session_factory):
    department = DepartmentTable(name="IT Operations", description="Desktop and network support")
    reporter = EmployeeTable(name="Jane Doe", email="jane.doe@example.com", department_id=department.id)
    agent = AgentTable(name="Sam Agent", email="sam@example.com", role="L1", is_active=True)
    senior = AgentTable(name="Alex Senior", email="alex@example.com", role="L2", is_active=True)
    retired = AgentTable(name="Old Agent", email="old@example.com", role="L1", is_active=False)
    network = CategoryTable(name="Network", description="Connectivity issues", sla_hours=24)
    general = CategoryTable(name="General", description="Anything else", sla_hours=None)

    async with session_factory() as session:
        session.add(department)
        await session.flush()
        session.add_all([reporter, agent, senior, retired, network, general])
        await session.commit()

    return SimpleNamespace(
        department_id=department.id,
        reporter_id=reporter.id,
        agent_id=agent.id,
        agent_name=agent.name,
        senior_agent_id=senior.id,
        inactive_agent_id=retired.id,
        network_category_id=network.id,
        general_category_id=general.id,
    )


@pytest.fixture
def make_ticket(ticket_service, seeded):
    """Create a ticket with sensible defaults; keyword arguments override them."""

    async def factory(**overrides):
        payload = {
            "title": "VPN keeps disconnecting",
            "description": "The VPN drops every few minutes since this morning.",
            "reporter_id": seeded.reporter_id,
            "priority": "MEDIUM",
            "category_id": seeded.network_category_id,
        }
        payload.update(overrides)
        return await ticket_service.create_ticket(**payload)

    return factory
