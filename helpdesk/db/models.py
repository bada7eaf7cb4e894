"""SQLModel table definitions for the helpdesk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class DepartmentTable(SQLModel, table=True):
    """Organisational unit that employees and tickets belong to."""

    __tablename__ = "departments"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class EmployeeTable(SQLModel, table=True):
    """Staff member who reports tickets."""

    __tablename__ = "employees"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    department_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("departments.id"), nullable=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class AgentTable(SQLModel, table=True):
    """Support agent that tickets can be assigned to."""

    __tablename__ = "agents"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    phone: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    role: str = Field(sa_column=Column(String(20), nullable=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    department_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("departments.id"), nullable=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class CategoryTable(SQLModel, table=True):
    """Ticket category carrying the resolution SLA."""

    __tablename__ = "categories"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    sla_hours: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Helpdesk ticket records."""

    __tablename__ = "tickets"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_number: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    priority: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    category_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("categories.id"), nullable=True)
    )
    department_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("departments.id"), nullable=True)
    )
    reporter_id: str = Field(sa_column=Column(String(36), ForeignKey("employees.id"), nullable=False))
    assigned_to_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("agents.id"), nullable=True, index=True)
    )
    resolution_note: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    due_date: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    resolved_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketSequenceTable(SQLModel, table=True):
    """Per-year counter used to hand out ticket numbers."""

    __tablename__ = "ticket_sequences"

    year: int = Field(primary_key=True)
    last_value: int = Field(default=0, sa_column=Column(Integer, nullable=False))


class CommentTable(SQLModel, table=True):
    """Public or internal note attached to a ticket."""

    __tablename__ = "comments"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    content: str = Field(sa_column=Column(Text, nullable=False))
    is_internal: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    author_name: str = Field(sa_column=Column(String(255), nullable=False))
    author_email: str = Field(default="", sa_column=Column(String(255), nullable=False, default=""))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class AttachmentTable(SQLModel, table=True):
    """File metadata for an upload linked to a ticket."""

    __tablename__ = "attachments"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    file_name: str = Field(sa_column=Column(String(255), nullable=False))
    mime_type: str | None = Field(default=None, sa_column=Column(String(100), nullable=True))
    file_size: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    url: str | None = Field(default=None, sa_column=Column(String(1024), nullable=True))
    uploaded_by: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class AuditLogTable(SQLModel, table=True):
    """Append-only history of ticket actions.

    ``ticket_id`` has no foreign key; entries outlive the ticket.
    """

    __tablename__ = "audit_logs"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    action: str = Field(sa_column=Column(String(100), nullable=False))
    old_value: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    new_value: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    performed_by: str = Field(sa_column=Column(String(255), nullable=False))
    performed_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
