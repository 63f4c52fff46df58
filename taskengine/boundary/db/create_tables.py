"""
Create all task engine tables.

Usage:
    python -m taskengine.boundary.db.create_tables

Dependencies: sqlalchemy, taskengine.boundary.db
System role: Schema bootstrap for local runs and fresh deployments
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from taskengine.boundary.db.base import Base
from taskengine.boundary.db.connection import get_async_engine
from taskengine.boundary.db import models  # noqa: F401  registers tables on Base.metadata
from taskengine.observability import configure_logging

logger = logging.getLogger(__name__)


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """
    Create every table registered on Base.metadata if missing.

    Args:
        engine: Engine to use (defaults to the configured engine)
    """
    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        f"{__name__}:create_tables - Tables ready",
        extra={"tables": sorted(Base.metadata.tables)},
    )


if __name__ == "__main__":
    configure_logging()
    asyncio.run(create_tables())
