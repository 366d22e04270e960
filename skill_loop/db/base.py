"""Declarative base, engine construction and the process-wide session factory.

PostgreSQL (asyncpg) is the production backend. SQLite (aiosqlite) is
supported for local runs and the test suite; it ignores FOR UPDATE, so the
version columns on journeys and users are what keep concurrent writers
apart there.
"""

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from skill_loop.core.config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with per-backend connection settings.

    SQLite connections wait up to sqlite_busy_timeout_seconds for a competing
    writer. Other backends get a pre-pinged pool sized from settings.
    """
    settings = get_settings()
    if make_url(url).get_backend_name() == "sqlite":
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": settings.sqlite_busy_timeout_seconds},
        )
    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Services keep using loaded rows after commit
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing journey tables. Alembic owns schema changes."""
    import skill_loop.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(url: str | None = None) -> None:
    """Build the global engine and session factory once and create missing tables."""
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    _engine = build_engine(url or settings.database_url, echo=settings.debug)
    _session_factory = build_session_factory(_engine)
    await create_schema(_engine)

    logger.info("database_initialized", backend=_engine.dialect.name)


async def close_db() -> None:
    """Dispose of the engine and release all connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the configured session factory.

    Raises RuntimeError if init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
