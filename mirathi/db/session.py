"""
Database Session Management
===========================

Async SQLAlchemy engine and session factory.

The engine is created on first use so that importing the package does
not require a database driver.

Author: Mirathi Team
Version: 1.0.0
"""

import logging
from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mirathi.config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_engine() -> AsyncEngine:
    """Create the async engine with connection pooling."""
    return create_async_engine(
        settings.postgres_async_dsn,
        echo=settings.debug,
        pool_pre_ping=True,
    )


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the shared engine."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a database session for one unit of work.

    Commits on success, rolls back on any error.

    Yields:
        AsyncSession: Database session that auto-closes
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Initialize database connection.

    Called during application startup.
    """
    logger.info("Initializing PostgreSQL connection...")

    async with get_engine().begin() as conn:
        await conn.run_sync(lambda _: None)

    logger.info("PostgreSQL connection established")


async def close_db() -> None:
    """
    Close database connections.

    Called during application shutdown.
    """
    logger.info("Closing PostgreSQL connections...")
    await get_engine().dispose()
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    logger.info("PostgreSQL connections closed")
