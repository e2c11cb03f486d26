"""
Create any missing tables for the school management schema.

Run once per environment before seeding:
  python -m app.db.schema_check
"""
import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

# Model modules must be imported so their tables are registered on Base.metadata
from app.auth.models import Admin  # noqa: F401
from app.core.logging import setup_logging
from app.core.models import Classroom, School, Student  # noqa: F401
from app.db.session import Base, engine

logger = logging.getLogger(__name__)

REQUIRED_TABLES: List[str] = ["admins", "schools", "classrooms", "students"]


async def missing_tables(db_engine: AsyncEngine) -> List[str]:
    async with db_engine.connect() as conn:
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
    return [t for t in REQUIRED_TABLES if t not in existing]


async def ensure_schema(db_engine: AsyncEngine) -> List[str]:
    """Create missing tables (and their indexes). Returns the names that were created."""
    missing = await missing_tables(db_engine)
    if missing:
        async with db_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created tables: %s", ", ".join(missing))
    else:
        logger.info("Schema up to date")
    return missing


async def main() -> None:
    setup_logging()
    try:
        await ensure_schema(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
