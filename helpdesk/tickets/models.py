from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .state import TicketPriority, TicketStatus


@dataclass(slots=True)
class Ticket:
    """Ticket as returned to callers, with derived fields filled in."""

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
    version: int = 1
    is_overdue: bool = False


@dataclass(slots=True)
class AuditLogEntry:
    """Immutable history entry describing one ticket action."""

    id: str
    ticket_id: str
    action: str
    old_value: str | None
    new_value: str | None
    performed_by: str
    performed_at: datetime


@dataclass(slots=True)
class DashboardStats:
    total_tickets: int = 0
    open_tickets: int = 0
    in_progress_tickets: int = 0
    resolved_today: int = 0
    overdue_tickets: int = 0
    critical_tickets: int = 0
