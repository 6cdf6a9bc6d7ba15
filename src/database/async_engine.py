"""Async database engine and session management.

Provides async SQLAlchemy engine configuration for SQLite (development,
tests) and PostgreSQL (production). The application factory builds one
``Database`` from its settings and keeps it on ``app.state``; every request
gets its own session that commits on success and rolls back on error.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from config.database import DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine.

    Args:
        settings: Database settings.

    Returns:
        AsyncEngine: Configured async engine instance.
    """
    logger.info(
        "Creating async database engine",
        extra={
            "driver": settings.driver,
            "database": settings.name if settings.is_postgres else str(settings.sqlite_path),
        },
    )

    if settings.is_sqlite:
        # SQLite doesn't support connection pooling in the traditional sense
        settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        engine_kwargs = {"poolclass": NullPool}
    else:
        engine_kwargs = {
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "pool_timeout": settings.pool_timeout,
            "pool_recycle": settings.pool_recycle,
            "pool_pre_ping": settings.pool_pre_ping,
        }

    engine = create_async_engine(
        settings.async_url,
        echo=settings.echo_sql,
        connect_args=settings.get_connect_args(),
        **engine_kwargs,
    )

    _setup_engine_events(engine, settings)
    return engine


def _setup_engine_events(engine: AsyncEngine, settings: DatabaseSettings) -> None:
    """Set up SQLAlchemy engine event listeners."""
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        logger.debug("Database connection established")

        if settings.is_sqlite:
            cursor = dbapi_connection.cursor()
            # Needed for ON DELETE SET NULL on task assignees
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class Database:
    """Engine plus session factory for one application instance."""

    def __init__(self, settings: DatabaseSettings):
        self.settings = settings
        self.engine = create_engine(settings)
        self.session_factory = get_session_factory(self.engine)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session as a context manager.

        Usage:
            async with db.session() as session:
                result = await session.execute(query)

        Yields:
            AsyncSession: Database session that auto-commits/rollbacks.
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def init_schema(self) -> None:
        """
        Create tables if they don't exist.

        For PostgreSQL deployments, run migrations instead.
        """
        from database.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized")

    async def check_connection(self) -> bool:
        """Check if the database is accessible."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    async def dispose(self) -> None:
        """Close the engine and release connections."""
        logger.info("Closing async database engine")
        await self.engine.dispose()
