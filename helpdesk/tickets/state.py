from __future__ import annotations

from enum import Enum
from typing import Mapping

from helpdesk.errors import ConflictError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TicketAction(str, Enum):
    """Mutations the lifecycle controller knows how to apply."""

    UPDATE = "update"
    ASSIGN = "assign"
    CHANGE_PRIORITY = "change_priority"
    HOLD = "hold"
    RESOLVE = "resolve"
    CLOSE = "close"
    ESCALATE = "escalate"
    REOPEN = "reopen"


TERMINAL_STATUSES: frozenset[TicketStatus] = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})

# Severity rank used for "priority descending" ordering.
PRIORITY_RANK: Mapping[TicketPriority, int] = {
    TicketPriority.LOW: 1,
    TicketPriority.MEDIUM: 2,
    TicketPriority.HIGH: 3,
    TicketPriority.CRITICAL: 4,
}

_ESCALATION_STEPS: Mapping[str, TicketPriority] = {
    TicketPriority.LOW.value: TicketPriority.MEDIUM,
    TicketPriority.MEDIUM.value: TicketPriority.HIGH,
    TicketPriority.HIGH.value: TicketPriority.CRITICAL,
    TicketPriority.CRITICAL.value: TicketPriority.CRITICAL,
}


def escalate_priority(current: str | TicketPriority | None) -> TicketPriority:
    """Step a priority one level up; CRITICAL is the ceiling, unknown values map to HIGH."""

    key = current.value if isinstance(current, TicketPriority) else current
    return _ESCALATION_STEPS.get(key or "", TicketPriority.HIGH)


class TicketStateMachine:
    """Validate which lifecycle actions are legal from a ticket's current status."""

    _SOURCES: Mapping[TicketAction, frozenset[TicketStatus]] = {
        TicketAction.UPDATE: frozenset(
            {TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD, TicketStatus.RESOLVED}
        ),
        TicketAction.ASSIGN: frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD}),
        TicketAction.CHANGE_PRIORITY: frozenset(
            {TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD}
        ),
        TicketAction.HOLD: frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS}),
        TicketAction.RESOLVE: frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD}),
        TicketAction.CLOSE: frozenset({TicketStatus.RESOLVED}),
        TicketAction.ESCALATE: frozenset({TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD}),
        TicketAction.REOPEN: frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED}),
    }

    # None keeps the current status.
    _TARGETS: Mapping[TicketAction, TicketStatus | None] = {
        TicketAction.UPDATE: None,
        TicketAction.ASSIGN: TicketStatus.IN_PROGRESS,
        TicketAction.CHANGE_PRIORITY: None,
        TicketAction.HOLD: TicketStatus.ON_HOLD,
        TicketAction.RESOLVE: TicketStatus.RESOLVED,
        TicketAction.CLOSE: TicketStatus.CLOSED,
        TicketAction.ESCALATE: TicketStatus.IN_PROGRESS,
        TicketAction.REOPEN: TicketStatus.OPEN,
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.OPEN

    @classmethod
    def can_apply(cls, action: TicketAction, current: TicketStatus) -> bool:
        return current in cls._SOURCES.get(action, frozenset())

    @classmethod
    def target_state(cls, action: TicketAction, current: TicketStatus) -> TicketStatus:
        target = cls._TARGETS.get(action)
        return current if target is None else target

    @classmethod
    def assert_action(cls, action: TicketAction, current: TicketStatus, *, ticket_label: str = "") -> TicketStatus:
        """Return the status the action leads to, or raise ConflictError."""

        if not cls.can_apply(action, current):
            raise ConflictError(cls._rejection_message(action, current, ticket_label))
        return cls.target_state(action, current)

    @staticmethod
    def _rejection_message(action: TicketAction, current: TicketStatus, ticket_label: str) -> str:
        if action is TicketAction.UPDATE:
            subject = f"Ticket {ticket_label}" if ticket_label else "Ticket"
            return f"{subject} is closed and cannot be modified"
        if action is TicketAction.ASSIGN:
            if current is TicketStatus.CLOSED:
                return "Cannot assign agent to a closed ticket"
            return "Cannot assign agent to a resolved ticket. Reopen it first"
        if action is TicketAction.CHANGE_PRIORITY:
            return f"Cannot change priority of a {current.value.lower()} ticket"
        if action is TicketAction.HOLD:
            if current is TicketStatus.ON_HOLD:
                return "Ticket is already on hold"
            return f"Cannot put a {current.value.lower()} ticket on hold"
        if action is TicketAction.RESOLVE:
            return f"Ticket is already {current.value.lower()}"
        if action is TicketAction.CLOSE:
            if current is TicketStatus.CLOSED:
                return "Ticket is already closed"
            return "Only resolved tickets can be closed. Please resolve the ticket first"
        if action is TicketAction.ESCALATE:
            return "Cannot escalate a resolved or closed ticket"
        if action is TicketAction.REOPEN:
            return "Only resolved or closed tickets can be reopened"
        return f"Action {action.value} is not allowed while ticket is {current.value}"
