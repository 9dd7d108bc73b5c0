"""Database connection and session management.

Provides async SQLAlchemy engine, session factory, and connection utilities.
PostgreSQL (asyncpg) is the production store; SQLite (aiosqlite) is accepted
for local runs and tests.

Thread-safety: All singleton access is protected by threading.RLock to prevent
race conditions during concurrent initialization.  RLock (reentrant) is
required because get_session_factory() calls get_engine() while holding the
lock.
"""

import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hass_gateway.settings import Settings, get_settings

# Module-level engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_init_lock = threading.RLock()


def _engine_kwargs(settings: Settings) -> dict[str, Any]:
    """Build create_async_engine keyword arguments for the configured dialect."""
    url = settings.database_url
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"echo": settings.debug}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            # A single shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    return {
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_timeout": settings.database_pool_timeout,
        "pool_recycle": settings.database_pool_recycle,
        "pool_pre_ping": True,
        "echo": settings.debug,
    }


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Get or create the async database engine.

    Thread-safe: Uses double-checked locking to prevent concurrent
    engine creation.

    Args:
        settings: Optional settings override. Uses get_settings() if not provided.

    Returns:
        Configured AsyncEngine instance.
    """
    global _engine

    if _engine is None:
        with _init_lock:
            if _engine is None:
                settings = settings or get_settings()
                _engine = create_async_engine(settings.database_url, **_engine_kwargs(settings))

    return _engine


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory.

    Args:
        settings: Optional settings override. Uses get_settings() if not provided.

    Returns:
        Configured async_sessionmaker instance.
    """
    global _session_factory

    if _session_factory is None:
        with _init_lock:
            if _session_factory is None:
                engine = get_engine(settings)
                _session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session with automatic cleanup.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)

    Yields:
        AsyncSession instance that is automatically closed.
    """
    factory = get_session_factory()
    session = factory()
    try:
        yield session
    finally:
        await session.close()


async def init_db() -> None:
    """Initialize database connection pool.

    Call this at application startup to eagerly verify connectivity.
    """
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def create_all() -> None:
    """Create every table known to the ORM metadata.

    Used for SQLite/local runs; PostgreSQL deployments use Alembic.
    """
    import hass_gateway.storage.entities  # noqa: F401 register models
    from hass_gateway.storage.models import Base

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections.

    Call this at application shutdown to cleanly close all connections.
    """
    global _engine, _session_factory

    with _init_lock:
        if _engine is not None:
            await _engine.dispose()
            _engine = None
            _session_factory = None


__all__ = [
    "close_db",
    "create_all",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
]
