from __future__ import annotations

import pytest

from helpdesk.entities import build_entity_repositories
from helpdesk.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def repositories(session_factory):
    return build_entity_repositories(session_factory)


@pytest.mark.asyncio
async def test_department_crud_round(repositories):
    departments = repositories["departments"]

    created = await departments.create({"name": "Facilities", "description": "Buildings and desks"})
    assert created.id
    assert (await departments.get(created.id)).name == "Facilities"

    updated = await departments.update(created.id, {"description": "Buildings, desks and parking"})
    assert updated.description == "Buildings, desks and parking"
    assert updated.name == "Facilities"

    await departments.delete(created.id)
    with pytest.raises(NotFoundError, match="Department not found"):
        await departments.get(created.id)


@pytest.mark.asyncio
async def test_unique_names_surface_as_conflicts(repositories):
    categories = repositories["categories"]
    await categories.create({"name": "Hardware", "sla_hours": 48})

    with pytest.raises(ConflictError):
        await categories.create({"name": "Hardware", "sla_hours": 8})


@pytest.mark.asyncio
async def test_references_must_exist(repositories, seeded):
    employees = repositories["employees"]

    with pytest.raises(ValidationError, match="Unknown department_id"):
        await employees.create({"name": "Ghost", "email": "ghost@example.com", "department_id": "missing"})

    employee = await employees.create(
        {"name": "Rita", "email": "rita@example.com", "department_id": seeded.department_id}
    )
    with pytest.raises(ValidationError):
        await employees.update(employee.id, {"department_id": "missing"})
    with pytest.raises(ValidationError, match="No fields provided"):
        await employees.update(employee.id, {})


@pytest.mark.asyncio
async def test_list_applies_equality_filters(repositories, seeded):
    agents = repositories["agents"]

    active = await agents.list({"is_active": True})
    assert {agent.id for agent in active} == {seeded.agent_id, seeded.senior_agent_id}

    seniors = await agents.list({"role": "L2", "is_active": None})
    assert [agent.id for agent in seniors] == [seeded.senior_agent_id]


@pytest.mark.asyncio
async def test_missing_rows_raise_not_found(repositories):
    with pytest.raises(NotFoundError):
        await repositories["agents"].update("missing", {"name": "Nobody"})
    with pytest.raises(NotFoundError):
        await repositories["comments"].delete("missing")
