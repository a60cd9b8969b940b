"""Create the classes table (and its indexes) when missing. Run: python -m app.db.schema_check"""

import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.models import TrainingClass
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


REQUIRED_TABLES: List[str] = [TrainingClass.__tablename__]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create any required table that does not exist yet. Returns the names created."""
    async with db_engine.begin() as conn:
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        # create_all skips tables that already exist
        await conn.run_sync(Base.metadata.create_all)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All required tables already exist in the database.")
    return missing


async def main() -> None:
    setup_logging(settings)
    try:
        await ensure_tables(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
