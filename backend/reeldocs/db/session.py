"""
Async engine and session factory.

SQLite (aiosqlite) is the default backend; foreign keys are switched on per
connection so ON DELETE CASCADE behaves the same as on PostgreSQL.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from reeldocs.config import Settings
from reeldocs.db.models import Base

logger = logging.getLogger(__name__)


def create_engine(settings: Settings, **kwargs) -> AsyncEngine:
    """
    Create the async engine for the configured database URL.

    Args:
        settings: Application settings (database_url, database_echo)
        **kwargs: Extra engine options (e.g. poolclass for tests)

    Returns:
        AsyncEngine instance
    """
    url = make_url(settings.database_url)
    is_sqlite = url.get_backend_name() == "sqlite"

    # Make sure the directory of a file-backed SQLite database exists
    if is_sqlite and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(url, echo=settings.database_echo, **kwargs)

    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    logger.debug(f"Database engine created: {url.render_as_string(hide_password=True)}")
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay usable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """
    Create all tables that do not exist yet.

    Args:
        engine: Async engine to run DDL on
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Transactional scope: commit on success, rollback on error.

    Example:
        async with session_scope(factory) as session:
            session.add(obj)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise
