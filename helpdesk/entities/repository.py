from __future__ import annotations

import logging
from typing import Any, Generic, Mapping, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from helpdesk.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TableT = TypeVar("TableT", bound=SQLModel)


class EntityRepository(Generic[TableT]):
    """Plain CRUD over one SQLModel table.

    ``references`` maps a foreign-key field to the table it points at; create
    and update reject values that do not resolve to an existing row.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        table: type[TableT],
        *,
        label: str,
        references: Mapping[str, type[SQLModel]] | None = None,
        order_by: str = "created_at",
    ) -> None:
        self._session_factory = session_factory
        self._table = table
        self._label = label
        self._references = dict(references or {})
        self._order_by = order_by

    @property
    def label(self) -> str:
        return self._label

    async def list(self, filters: Mapping[str, Any] | None = None) -> list[TableT]:
        statement = select(self._table)
        for key, value in (filters or {}).items():
            if value is None:
                continue
            statement = statement.where(getattr(self._table, key) == value)
        statement = statement.order_by(getattr(self._table, self._order_by).asc())
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def get(self, entity_id: str) -> TableT:
        async with self._session_factory() as session:
            row = await session.get(self._table, entity_id)
        if row is None:
            raise NotFoundError(f"{self._label} not found: {entity_id}")
        return row

    async def create(self, data: Mapping[str, Any]) -> TableT:
        async with self._session_factory() as session:
            await self._check_references(session, data)
            row = self._table(**data)
            session.add(row)
            await self._commit(session)
            await session.refresh(row)
        logger.info("Created %s %s", self._label, row.id)
        return row

    async def update(self, entity_id: str, data: Mapping[str, Any]) -> TableT:
        if not data:
            raise ValidationError("No fields provided for update")
        async with self._session_factory() as session:
            row = await session.get(self._table, entity_id)
            if row is None:
                raise NotFoundError(f"{self._label} not found: {entity_id}")
            await self._check_references(session, data)
            for key, value in data.items():
                setattr(row, key, value)
            await self._commit(session)
            await session.refresh(row)
        return row

    async def delete(self, entity_id: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(self._table, entity_id)
            if row is None:
                raise NotFoundError(f"{self._label} not found: {entity_id}")
            await session.delete(row)
            await self._commit(session)
        logger.info("Deleted %s %s", self._label, entity_id)

    async def _check_references(self, session: AsyncSession, data: Mapping[str, Any]) -> None:
        for field_name, table in self._references.items():
            value = data.get(field_name)
            if value is not None and await session.get(table, value) is None:
                raise ValidationError(f"Unknown {field_name}: {value}")

    async def _commit(self, session: AsyncSession) -> None:
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise ConflictError(f"{self._label} conflicts with existing data: {exc.orig}") from exc
