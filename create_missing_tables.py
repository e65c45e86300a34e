import asyncio
import logging
from pathlib import Path

from npsbot.config.settings import settings
from npsbot.infrastructure.database.db_helper import engine, Base
from npsbot.infrastructure.database import models  # noqa: F401  registers the tables on Base

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def create_tables():
    if settings.database_url.startswith("sqlite") and "/./" in settings.database_url:
        Path("data").mkdir(exist_ok=True)
    logger.info("Ensuring all tables exist...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables checked and created if missing.")
    await engine.dispose()

if __name__ == "__main__":
    asyncio.run(create_tables())
