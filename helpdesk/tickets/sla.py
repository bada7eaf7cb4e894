"""Derived ticket fields: numbering, SLA due dates and the overdue flag."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from .state import TERMINAL_STATUSES, TicketStatus

SEQUENCE_WIDTH = 5


def format_ticket_number(year: int, sequence: int, *, prefix: str = "TKT") -> str:
    """Render ``TKT-2024-00001`` style identifiers."""

    return f"{prefix}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def ticket_number_pattern(year: int, *, prefix: str = "TKT") -> str:
    """SQL LIKE pattern matching every ticket number issued in ``year``."""

    return f"{prefix}-{year}-%"


def compute_due_date(created_at: datetime, sla_hours: int | None) -> datetime | None:
    if not sla_hours:
        return None
    return created_at + timedelta(hours=sla_hours)


def is_overdue(due_date: datetime | None, status: TicketStatus, now: datetime) -> bool:
    if due_date is None or status in TERMINAL_STATUSES:
        return False
    return ensure_utc(due_date) < now


def start_of_day(now: datetime, tz_name: str = "UTC") -> datetime:
    """Midnight of ``now``'s calendar day in ``tz_name``, expressed in UTC."""

    local = now.astimezone(ZoneInfo(tz_name))
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
