"""
Engine and session factories for repository handles.

Nothing is created at import time: callers build an engine from a
``Settings`` instance, wrap it in a session factory, and hand the sessions
it yields to ``Repository``.  Repositories never open or close sessions.

Usage::

    engine = create_engine(settings)
    sessions = create_sessionmaker(engine)
    async with session_scope(sessions) as db:
        users = Repository(db, "users", User.model_validate)
        ...
    await engine.dispose()
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from tablerepo.core.config import Settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(config: Settings) -> AsyncEngine:
    """
    Build an async engine for the backend ``config`` selects.

    In-memory SQLite gets a ``StaticPool`` so every checkout shares one
    database; file-backed SQLite and PostgreSQL use a regular pool.
    """
    url = config.DATABASE_URL
    if config.USE_SQLITE:
        options = {"connect_args": {"check_same_thread": False}}
        if not config.SQLITE_PATH:
            options["poolclass"] = StaticPool
        engine = create_async_engine(url, echo=config.DEBUG, **options)
        # aiosqlite wraps a sync connection, so "connect" fires on the sync engine.
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_async_engine(
            url,
            echo=config.DEBUG,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout=config.DB_POOL_TIMEOUT,
            pool_recycle=config.DB_POOL_RECYCLE,
            pool_pre_ping=True,
        )
    logger.info("Created %s engine", engine.url.drivername)
    return engine


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after ``commit()``."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(
    sessions: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Yield a session and close it afterwards.

    Repository writes commit on their own; an exception escaping the block
    rolls back whatever is still pending before it propagates.
    """
    async with sessions() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.exception("Session rolled back due to exception")
            raise
