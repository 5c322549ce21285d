# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

Uses the SQLAlchemy 2.0 async API: asyncpg in production, aiosqlite for
local runs and tests.

Example:
    from learnpath.infrastructure.database.connection import (
        init_database,
        get_session,
    )

    # Initialize at startup
    await init_database(settings)

    async with get_session() as session:
        service = ProgressionService(session)
        await service.complete_lesson(user_id, node_id)
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from learnpath.infrastructure.database.models.base import Base

if TYPE_CHECKING:
    from learnpath.core.config.settings import Settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or driver error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def create_engine_for_url(url: str, echo: bool = False, pool_pre_ping: bool = True) -> AsyncEngine:
    """Create an async engine with pool options suited to the backend.

    In-memory SQLite gets a StaticPool so every session sees the same
    database.

    Args:
        url: Async SQLAlchemy URL.
        echo: Echo SQL statements.
        pool_pre_ping: Test pooled connections before use.

    Returns:
        Configured AsyncEngine.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_pre_ping=pool_pre_ping, pool_recycle=1800)
    return create_async_engine(url, **kwargs)


async def init_database(settings: "Settings") -> None:
    """Initialize the engine and sessionmaker.

    Args:
        settings: Application settings containing database configuration.

    Raises:
        DatabaseError: If engine creation fails.
    """
    global _engine, _sessionmaker

    try:
        _engine = create_engine_for_url(
            settings.database.url,
            echo=settings.database.echo,
            pool_pre_ping=settings.database.pool_pre_ping,
        )
        _sessionmaker = async_sessionmaker(
            bind=_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e

    logger.info("Database initialized: %s", _engine.url.render_as_string(hide_password=True))


async def close_database() -> None:
    """Dispose of the engine and forget the sessionmaker."""
    global _engine, _sessionmaker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessionmaker = None


def get_engine() -> AsyncEngine:
    """Get the async engine.

    Raises:
        DatabaseError: If the database has not been initialized.
    """
    if _engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Get the async sessionmaker.

    Raises:
        DatabaseError: If the database has not been initialized.
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Get an async session.

    The session is committed on success and rolled back on exception.
    Services commit their own units of work; the outer commit only
    flushes whatever the caller did directly.

    Yields:
        AsyncSession for database operations.

    Raises:
        DatabaseError: If a database operation fails.
    """
    sessionmaker = get_sessionmaker()

    async with sessionmaker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except Exception:
            await session.rollback()
            raise


async def create_schema(engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables that do not exist yet.

    Args:
        engine: Engine to use. Defaults to the initialized engine.
    """
    # Registers every mapped table on Base.metadata.
    from learnpath.infrastructure.database import models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_database_connection() -> bool:
    """Check if the database is reachable.

    Returns:
        True if a trivial query succeeds, False otherwise.
    """
    if _engine is None:
        return False

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.warning("Database connection check failed", exc_info=True)
        return False
