"""Async SQLAlchemy store handle.

Provides:
- Base: Declarative base for every table (tenant rows are partitioned by a
  required tenant_id column, not by schema)
- Database: the store handle, constructed once at process start and passed
  to every repository as its session factory
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

# ── Declarative Base ────────────────────────────────────────────────────────

naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all persistence models."""

    metadata = MetaData(naming_convention=naming_convention)


# ── Store Handle ────────────────────────────────────────────────────────────


class Database:
    """Owns the engine and hands out sessions.

    One instance per process, created in the application lifespan and
    injected into repositories; ``session`` has the signature repositories
    expect for their ``session_factory``.

    Args:
        url: SQLAlchemy async database URL.
        pool_size: Connection pool size.
        max_overflow: Connections allowed beyond ``pool_size``.
    """

    def __init__(self, url: str, pool_size: int = 20, max_overflow: int = 10, echo: bool = False) -> None:
        self._engine: AsyncEngine = create_async_engine(
            url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            echo=echo,
        )
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield an AsyncSession; rolled back on error, closed on exit."""
        async with self._sessionmaker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> None:
        """Round-trip to the database. Raises on failure."""
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_all(self) -> None:
        """Create all tables (development and tests; production uses Alembic)."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Dispose of the engine and close all connections."""
        await self._engine.dispose()
