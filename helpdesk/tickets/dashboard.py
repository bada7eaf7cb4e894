from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.db.models import TicketTable

from .models import DashboardStats, Ticket
from .repository import TicketRepository
from .sla import start_of_day
from .state import PRIORITY_RANK, TERMINAL_STATUSES, TicketPriority, TicketStatus

_TERMINAL_VALUES = tuple(status.value for status in TERMINAL_STATUSES)

_PRIORITY_ORDER = case(
    {priority.value: rank for priority, rank in PRIORITY_RANK.items()},
    value=TicketTable.priority,
    else_=0,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardService:
    """Read-only aggregates and projections over the ticket store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        reporting_timezone: str = "UTC",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._reporting_timezone = reporting_timezone
        self._clock = clock

    async def get_dashboard_stats(self) -> DashboardStats:
        now = self._clock()
        today = start_of_day(now, self._reporting_timezone)
        statement = select(
            func.count(),
            func.count(case((TicketTable.status == TicketStatus.OPEN.value, 1))),
            func.count(case((TicketTable.status == TicketStatus.IN_PROGRESS.value, 1))),
            func.count(
                case(
                    (
                        (TicketTable.status == TicketStatus.RESOLVED.value) & (TicketTable.resolved_at >= today),
                        1,
                    )
                )
            ),
            func.count(
                case(
                    (
                        (TicketTable.due_date < now) & TicketTable.status.not_in(_TERMINAL_VALUES),
                        1,
                    )
                )
            ),
            func.count(
                case(
                    (
                        (TicketTable.priority == TicketPriority.CRITICAL.value)
                        & (TicketTable.status != TicketStatus.CLOSED.value),
                        1,
                    )
                )
            ),
        ).select_from(TicketTable)
        async with self._session_factory() as session:
            row = (await session.execute(statement)).one()
        total, open_count, in_progress, resolved_today, overdue, critical = (int(value or 0) for value in row)
        return DashboardStats(
            total_tickets=total,
            open_tickets=open_count,
            in_progress_tickets=in_progress,
            resolved_today=resolved_today,
            overdue_tickets=overdue,
            critical_tickets=critical,
        )

    async def get_agent_tickets(self, agent_id: str) -> list[Ticket]:
        """Open work for one agent, most severe first, then oldest first."""

        statement = (
            select(TicketTable)
            .where(
                TicketTable.assigned_to_id == agent_id,
                TicketTable.status != TicketStatus.CLOSED.value,
            )
            .order_by(_PRIORITY_ORDER.desc(), TicketTable.created_at.asc())
        )
        return await self._fetch(statement)

    async def get_overdue_tickets(self) -> list[Ticket]:
        now = self._clock()
        statement = (
            select(TicketTable)
            .where(
                TicketTable.due_date.is_not(None),
                TicketTable.due_date < now,
                TicketTable.status.not_in(_TERMINAL_VALUES),
            )
            .order_by(_PRIORITY_ORDER.desc(), TicketTable.due_date.asc())
        )
        return await self._fetch(statement)

    async def _fetch(self, statement) -> list[Ticket]:
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return TicketRepository.to_tickets(result.scalars().all(), self._clock())
