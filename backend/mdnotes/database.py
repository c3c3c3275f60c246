"""
mdnotes Backend - Database Engine & Session Factory
=====================================================

What:  Async SQLAlchemy engine construction, session factory, and ORM base.
How:   build_engine() creates a pooled async engine from Settings; the engine
       and its session factory are stored on app.state at startup and handed
       to each component's constructor. Nothing here is a module-level
       singleton, so tests can bind the same components to a SQLite file.
Who:   Used by the application lifespan, the migrator, and the test suite.

Connection Pooling:
    PostgreSQL (asyncpg):  pool_size / max_overflow / pre_ping from Settings,
                           connections recycled after one hour.
    SQLite (aiosqlite):    default pool; used by tests and local tinkering.
                           Transactional DDL is switched on so a failed
                           migration rolls back its CREATE statements too.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from mdnotes.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    The physical schema is owned by the SQL files under migrations/; the ORM
    metadata mirrors it and is only used directly to build throwaway test
    databases.
    """
    pass


def utc_now() -> datetime:
    """Server clock used for every persisted timestamp."""
    return datetime.now(timezone.utc)


def is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def build_engine(settings: Settings, echo: Optional[bool] = None) -> AsyncEngine:
    """
    Create the async engine (and its connection pool) for the configured URL.

    Args:
        settings: Application settings (database_url and pool sizing)
        echo:     Force SQL echo on/off; defaults to LOG_LEVEL == DEBUG

    Returns:
        An AsyncEngine. Connections are opened lazily on first use.
    """
    if echo is None:
        echo = settings.log_level == "DEBUG"

    if is_sqlite(settings.database_url):
        engine = create_async_engine(settings.database_url, echo=echo)
        enable_sqlite_transactional_ddl(engine)
        return engine

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=echo,
    )


def enable_sqlite_transactional_ddl(engine: AsyncEngine) -> None:
    """
    Make pysqlite/aiosqlite emit BEGIN for every transaction, DDL included.

    The sqlite3 module otherwise autocommits CREATE/ALTER statements, which
    would let a failed migration leave half of its schema behind.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory handed to the repositories.

    expire_on_commit=False keeps returned ORM objects readable after the
    session that loaded them has been closed.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def dispose_engine(engine: AsyncEngine) -> None:
    """Closes all pooled connections; called during application shutdown."""
    await engine.dispose()
