"""Async SQLAlchemy engine and session helpers shared by the SQL adapters."""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Table
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from visita_workflow.core.models import Base


def create_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_timeout: int = 30,
) -> AsyncEngine:
    """Create an async engine with pooling suited to the database backend.

    SQLite (aiosqlite) does not take queue pool settings, so they are only
    passed for server databases.

    Args:
        database_url: SQLAlchemy async URL, e.g. postgresql+asyncpg://...
        pool_size: Connection pool size.
        max_overflow: Max overflow connections above pool_size.
        pool_timeout: Seconds to wait for a connection before raising.

    Returns:
        The configured AsyncEngine.
    """
    kwargs: dict[str, Any] = {"echo": False}
    if make_url(database_url).get_backend_name() != "sqlite":
        kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
        )
    return create_async_engine(database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine, tables: Sequence[Table]) -> None:
    """Create the given tables if they do not exist yet."""
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all, tables=list(tables))
