from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from helpdesk.db import models  # noqa: F401  registers the tables on SQLModel.metadata


def to_async_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses an async driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://") :]
    return dsn


def create_engine(dsn: str, *, echo: bool = False) -> AsyncEngine:
    url = to_async_dsn(dsn)
    if url.startswith("sqlite+aiosqlite://") and ":memory:" in url:
        # every pooled connection would otherwise open its own empty database
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, echo=echo, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create any missing tables; migrations remain the production path."""

    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
