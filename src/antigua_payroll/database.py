"""Database connection and session management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from antigua_payroll.config import get_settings
from antigua_payroll.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine."""
    url = make_url(database_url or get_settings().database_url)
    options: dict[str, Any] = {"echo": False}
    if url.get_backend_name() == "postgresql":
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return create_async_engine(url, **options)


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = get_engine()
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _engine, _session_factory


async def create_schema(engine: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    if engine is None:
        engine, _ = init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    """Dispose the global engine (used by the CLI on exit)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session that commits on success and rolls back on error."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _supports_advisory_locks(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name == "postgresql"


async def acquire_advisory_lock(session: AsyncSession, key: str) -> bool:
    """Try to take a transaction-level advisory lock keyed by ``key``.

    Returns True if the lock was acquired, False if another transaction holds
    it. The lock is held until the surrounding transaction commits or rolls
    back. Databases without advisory locks (SQLite in tests) always succeed.
    """
    if not _supports_advisory_locks(session):
        return True
    result = await session.execute(
        text("SELECT pg_try_advisory_xact_lock(hashtext(:key))"),
        {"key": key},
    )
    return bool(result.scalar())


async def wait_for_advisory_lock(session: AsyncSession, key: str) -> None:
    """Block until the transaction-level advisory lock ``key`` is held."""
    if not _supports_advisory_locks(session):
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": key},
    )
