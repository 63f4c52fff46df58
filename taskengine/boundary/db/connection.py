"""
Database connection management.

Provides async SQLAlchemy engine, session factory, and FastAPI dependency
for database session injection. Queue and handler code open one session
per operation from the shared factory so concurrent tasks never share a
transaction.

Dependencies: sqlalchemy, taskengine.configs
System role: Database connection lifecycle management
"""

from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from taskengine.configs import get_settings


@lru_cache
def get_async_engine() -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    pool_pre_ping=True verifies connections before use to detect
    stale/broken connections early. Pool sizing is skipped for SQLite,
    which does not accept QueuePool arguments.

    Returns:
        AsyncEngine: Configured async SQLAlchemy engine (cached)

    Raises:
        ArgumentError: If database URL is invalid or engine creation fails
    """
    db_config = get_settings().database

    if db_config.is_sqlite:
        return create_async_engine(db_config.async_database_url, echo=db_config.echo_sql)

    return create_async_engine(
        db_config.async_database_url,
        echo=db_config.echo_sql,
        pool_size=db_config.pool_size,
        max_overflow=db_config.max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=True,
    )


def get_async_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """
    Create async session factory for database operations.

    Returns async_sessionmaker bound to engine with autoflush=False
    and expire_on_commit=False so returned ORM objects stay readable
    after the owning session commits.

    Args:
        engine: Engine to bind (defaults to the configured engine)

    Returns:
        async_sessionmaker: Async session factory

    Usage:
        SessionFactory = get_async_session_factory()
        async with SessionFactory() as session:
            session.add(obj)
            await session.commit()
    """
    return async_sessionmaker(
        bind=engine or get_async_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for async database session injection with automatic cleanup.

    Yields:
        AsyncSession: Async SQLAlchemy database session (scoped to request lifetime)
    """
    SessionFactory = get_async_session_factory()
    async with SessionFactory() as session:
        yield session
