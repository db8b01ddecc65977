"""
Database engine and session management.

One async engine serves both the request handlers (via get_session)
and the background sync loop (via async_session_factory directly).
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from spots.config import settings
from spots.models.db import Base


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite engines get foreign key enforcement switched on so that
    deleting a card or tracker cascades like it does on PostgreSQL.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True

    async_engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        sync_engine: Engine = async_engine.sync_engine
        event.listen(sync_engine, "connect", _enable_sqlite_foreign_keys)
    return async_engine


def build_session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with attribute expiry disabled for async access."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)
async_session_factory = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Commits when the request handler returns, rolls back on database errors.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


async def init_db(async_engine: AsyncEngine | None = None) -> None:
    """
    Create all tables defined in the ORM models.

    Should be called once at application startup.
    """
    async with (async_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
