"""Ticket lifecycle: state machine, audit trail, service and reporting."""

from .audit import AuditRecorder
from .dashboard import DashboardService
from .models import AuditLogEntry, DashboardStats, Ticket
from .repository import TicketRepository
from .service import TicketService
from .state import TicketAction, TicketPriority, TicketStateMachine, TicketStatus, escalate_priority

__all__ = [
    "AuditLogEntry",
    "AuditRecorder",
    "DashboardService",
    "DashboardStats",
    "Ticket",
    "TicketAction",
    "TicketPriority",
    "TicketRepository",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "escalate_priority",
]
