"""Database engine, declarative base and session management.

This module is the only place that creates the async engine. Request handlers
receive a session through the get_db_session() FastAPI dependency; background
work (bulk jobs) opens one short-lived session per item with session_scope()
so that each item commits or rolls back on its own.

Key exports:
- Base / StewardshipModel  — declarative base and the id/timestamps mixin
- init_database(...)       — call at startup to create the engine
- close_database()         — call at shutdown to dispose the engine
- get_session_factory()    — the initialized async_sessionmaker
- get_db_session()         — FastAPI dependency (commit on success, rollback on error)
- session_scope(factory)   — async context manager for a single unit of work
- enable_sqlite_savepoints — SAVEPOINT support for SQLite engines (tests, local runs)
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from swor_stewardship.observability import get_logger

logger = get_logger(__name__)

# JSON everywhere, JSONB on PostgreSQL
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Return the current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def new_id() -> str:
    """Return a new string primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model."""


class StewardshipModel(Base):
    """Abstract base adding id, created_at and updated_at columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINT (begin_nested) works.

    The sqlite3 driver otherwise opens transactions on its own and breaks
    nested transactions used by safe reset.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(connection: Any) -> None:
        connection.exec_driver_sql("BEGIN")


# Module-level engine and session factory — initialized by init_database()
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_database(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 5,
    echo: bool = False,
    **engine_kwargs: Any,
) -> async_sessionmaker[AsyncSession]:
    """Initialize the database engine and session factory.

    Args:
        database_url: SQLAlchemy async database URL.
        pool_size: Connection pool size (ignored for SQLite).
        max_overflow: Max overflow connections above pool_size (ignored for SQLite).
        echo: Echo SQL statements.
        **engine_kwargs: Extra keyword arguments for create_async_engine.

    Returns:
        The initialized session factory.
    """
    global _engine, _session_factory  # noqa: PLW0603

    logger.info("Initializing database engine", pool_size=pool_size, max_overflow=max_overflow)

    if not database_url.startswith("sqlite"):
        engine_kwargs.setdefault("pool_size", pool_size)
        engine_kwargs.setdefault("max_overflow", max_overflow)
        engine_kwargs.setdefault("pool_pre_ping", True)

    _engine = create_async_engine(database_url, echo=echo, **engine_kwargs)
    if database_url.startswith("sqlite"):
        enable_sqlite_savepoints(_engine)
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _session_factory


async def close_database() -> None:
    """Dispose the database engine."""
    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None:
        logger.info("Disposing database engine")
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the initialized session factory.

    Raises:
        RuntimeError: If init_database() has not been called yet.
    """
    if _session_factory is None:
        raise RuntimeError(
            "Database has not been initialized. Call init_database() in the application lifespan handler."
        )
    return _session_factory


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session, commit on success, roll back and re-raise on error.

    Args:
        factory: Session factory to open the session from.

    Yields:
        AsyncSession for a single unit of work.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a request-scoped session.

    Yields:
        AsyncSession committed after the request handler returns.

    Raises:
        RuntimeError: If init_database() has not been called yet.
    """
    async with session_scope(get_session_factory()) as session:
        yield session
