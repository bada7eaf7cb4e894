from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from helpdesk.db.models import AuditLogTable

from .models import AuditLogEntry
from .sla import ensure_utc

logger = logging.getLogger(__name__)


class AuditRecorder:
    """Append-only writer and reader for the ticket audit trail.

    ``append`` joins the caller's session so the entry commits or rolls back
    together with the mutation it describes. Entries are never updated or
    deleted.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        default_performer: str = "System",
    ) -> None:
        self._session_factory = session_factory
        self._default_performer = default_performer

    def append(
        self,
        session: AsyncSession,
        *,
        ticket_id: str,
        action: str,
        old_value: Any = None,
        new_value: Any = None,
        performed_by: str | None = None,
        performed_at: datetime | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            action=action,
            old_value=_as_text(old_value),
            new_value=_as_text(new_value),
            performed_by=performed_by or self._default_performer,
            performed_at=performed_at or datetime.now(timezone.utc),
        )
        session.add(
            AuditLogTable(
                id=entry.id,
                ticket_id=entry.ticket_id,
                action=entry.action,
                old_value=entry.old_value,
                new_value=entry.new_value,
                performed_by=entry.performed_by,
                performed_at=entry.performed_at,
            )
        )
        logger.debug("Audit %s on ticket %s by %s", action, ticket_id, entry.performed_by)
        return entry

    async def list_for_ticket(self, ticket_id: str) -> list[AuditLogEntry]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AuditLogTable)
                .where(AuditLogTable.ticket_id == ticket_id)
                .order_by(AuditLogTable.performed_at.asc())
            )
            return [self._row_to_entry(row) for row in result.scalars().all()]

    @staticmethod
    def _row_to_entry(row: AuditLogTable) -> AuditLogEntry:
        return AuditLogEntry(
            id=row.id,
            ticket_id=row.ticket_id,
            action=row.action,
            old_value=row.old_value,
            new_value=row.new_value,
            performed_by=row.performed_by,
            performed_at=ensure_utc(row.performed_at),
        )


def _as_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)
