"""Database connection and session management for BMCalc.

Provides async SQLAlchemy session management with connection pooling.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from bmcalc.config import get_config
from bmcalc.db.models import Base

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def create_engine_for_url(url: str, echo: bool = False, **pool_kwargs) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign keys enabled."""
    engine = create_async_engine(url, echo=echo, **pool_kwargs)

    if "sqlite" in url.lower():

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_engine() -> AsyncEngine:
    """Get or create singleton async engine.

    Raises:
        KeyError: If DATABASE_URL is not configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db

        pool_kwargs = {}
        # SQLite doesn't support connection pooling parameters
        if "sqlite" not in db_config.url.lower():
            pool_kwargs = {
                "pool_size": db_config.pool_size,
                "max_overflow": db_config.pool_max_overflow,
                "pool_timeout": db_config.pool_timeout,
                "pool_pre_ping": True,
                "pool_recycle": 3600,
            }

        _engine = create_engine_for_url(db_config.url, echo=db_config.echo, **pool_kwargs)

    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session (context manager).

    Usage:
        async with get_session() as session:
            items = await list_price_items(session)

    Commits on success and rolls back on any exception.
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """Create all tables (development and tests; no migrations are shipped)."""
    engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database engine and dispose connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
