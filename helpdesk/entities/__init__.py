"""Reference entities served through generic CRUD."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.db.models import (
    AgentTable,
    AttachmentTable,
    CategoryTable,
    CommentTable,
    DepartmentTable,
    EmployeeTable,
    TicketTable,
)

from .repository import EntityRepository


def build_entity_repositories(
    session_factory: async_sessionmaker[AsyncSession],
) -> dict[str, EntityRepository]:
    """Return the CRUD repositories keyed by their collection name."""

    return {
        "departments": EntityRepository(session_factory, DepartmentTable, label="Department"),
        "employees": EntityRepository(
            session_factory,
            EmployeeTable,
            label="Employee",
            references={"department_id": DepartmentTable},
        ),
        "agents": EntityRepository(
            session_factory,
            AgentTable,
            label="Agent",
            references={"department_id": DepartmentTable},
        ),
        "categories": EntityRepository(session_factory, CategoryTable, label="Category"),
        "comments": EntityRepository(
            session_factory,
            CommentTable,
            label="Comment",
            references={"ticket_id": TicketTable},
        ),
        "attachments": EntityRepository(
            session_factory,
            AttachmentTable,
            label="Attachment",
            references={"ticket_id": TicketTable},
        ),
    }


__all__ = ["EntityRepository", "build_entity_repositories"]
