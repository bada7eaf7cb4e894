from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from helpdesk.db.models import (
    AgentTable,
    AttachmentTable,
    CommentTable,
    TicketSequenceTable,
    TicketTable,
)
from helpdesk.errors import ConflictError

from .models import Ticket
from .sla import ensure_utc, format_ticket_number, is_overdue, ticket_number_pattern
from .state import TicketPriority, TicketStatus


class TicketRepository:
    """Persistence helper wrapping tickets and the rows they own.

    Mutating helpers take the caller's session so that one lifecycle action
    (ticket update, side-effect comment, audit entry) commits as a unit.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        number_prefix: str = "TKT",
    ) -> None:
        self._session_factory = session_factory
        self._number_prefix = number_prefix

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except IntegrityError as exc:
                raise ConflictError(f"Conflicting write: {exc.orig}") from exc

    async def next_ticket_number(self, session: AsyncSession, year: int) -> str:
        sequence = await session.get(TicketSequenceTable, year, with_for_update=True)
        if sequence is None:
            issued = await session.scalar(
                select(func.count())
                .select_from(TicketTable)
                .where(TicketTable.ticket_number.like(ticket_number_pattern(year, prefix=self._number_prefix)))
            )
            sequence = TicketSequenceTable(year=year, last_value=int(issued or 0))
            session.add(sequence)
        sequence.last_value += 1
        await session.flush()
        return format_ticket_number(year, sequence.last_value, prefix=self._number_prefix)

    async def insert_ticket(self, session: AsyncSession, row: TicketTable) -> None:
        session.add(row)
        await session.flush()

    async def lock_ticket(self, session: AsyncSession, ticket_id: str) -> TicketTable | None:
        return await session.get(TicketTable, ticket_id, with_for_update=True)

    async def apply_changes(
        self,
        session: AsyncSession,
        ticket_id: str,
        *,
        expected_version: int,
        changes: Mapping[str, Any],
    ) -> TicketTable:
        """Write ``changes`` only if nobody bumped the version since it was read."""

        result = await session.execute(
            update(TicketTable)
            .where(TicketTable.id == ticket_id, TicketTable.version == expected_version)
            .values(**changes, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(f"Ticket {ticket_id} was modified concurrently, please retry")
        row = await session.get(TicketTable, ticket_id, populate_existing=True)
        if row is None:  # pragma: no cover - deleted inside our own transaction
            raise ConflictError(f"Ticket {ticket_id} disappeared during update")
        return row

    def add_comment(self, session: AsyncSession, comment: CommentTable) -> None:
        session.add(comment)

    def add_attachment(self, session: AsyncSession, attachment: AttachmentTable) -> None:
        session.add(attachment)

    async def delete_ticket(self, session: AsyncSession, ticket_id: str) -> None:
        await session.execute(delete(CommentTable).where(CommentTable.ticket_id == ticket_id))
        await session.execute(delete(AttachmentTable).where(AttachmentTable.ticket_id == ticket_id))
        await session.execute(delete(TicketTable).where(TicketTable.id == ticket_id))

    async def exists(self, session: AsyncSession, table: type[SQLModel], entity_id: str) -> bool:
        return await session.get(table, entity_id) is not None

    async def get_active_agent(self, session: AsyncSession, agent_id: str) -> AgentTable | None:
        agent = await session.get(AgentTable, agent_id)
        if agent is None or not agent.is_active:
            return None
        return agent

    async def get_ticket(self, ticket_id: str, *, now: datetime) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self.to_ticket(row, now)

    async def list_tickets(
        self,
        *,
        now: datetime,
        status: TicketStatus | None = None,
        priority: TicketPriority | None = None,
        assigned_to_id: str | None = None,
        category_id: str | None = None,
    ) -> list[Ticket]:
        statement = select(TicketTable)
        if status is not None:
            statement = statement.where(TicketTable.status == status.value)
        if priority is not None:
            statement = statement.where(TicketTable.priority == priority.value)
        if assigned_to_id is not None:
            statement = statement.where(TicketTable.assigned_to_id == assigned_to_id)
        if category_id is not None:
            statement = statement.where(TicketTable.category_id == category_id)
        statement = statement.order_by(TicketTable.created_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return self.to_tickets(result.scalars().all(), now)

    async def list_comments(self, ticket_id: str, *, include_internal: bool = True) -> list[CommentTable]:
        statement = select(CommentTable).where(CommentTable.ticket_id == ticket_id)
        if not include_internal:
            statement = statement.where(CommentTable.is_internal.is_(False))
        async with self._session_factory() as session:
            result = await session.execute(statement.order_by(CommentTable.created_at.asc()))
            return list(result.scalars().all())

    async def list_attachments(self, ticket_id: str) -> list[AttachmentTable]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AttachmentTable)
                .where(AttachmentTable.ticket_id == ticket_id)
                .order_by(AttachmentTable.created_at.asc())
            )
            return list(result.scalars().all())

    @classmethod
    def to_tickets(cls, rows: Sequence[TicketTable], now: datetime) -> list[Ticket]:
        return [cls.to_ticket(row, now) for row in rows]

    @staticmethod
    def to_ticket(row: TicketTable, now: datetime) -> Ticket:
        status = TicketStatus(row.status)
        due_date = ensure_utc(row.due_date) if row.due_date else None
        return Ticket(
            id=row.id,
            ticket_number=row.ticket_number,
            title=row.title,
            description=row.description,
            status=status,
            priority=TicketPriority(row.priority),
            category_id=row.category_id,
            department_id=row.department_id,
            reporter_id=row.reporter_id,
            assigned_to_id=row.assigned_to_id,
            resolution_note=row.resolution_note,
            due_date=due_date,
            resolved_at=ensure_utc(row.resolved_at) if row.resolved_at else None,
            closed_at=ensure_utc(row.closed_at) if row.closed_at else None,
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
            version=row.version,
            is_overdue=is_overdue(due_date, status, now),
        )
