import asyncio
import argparse
from deskflow.db.session import engine, AsyncSessionLocal
from deskflow.db.models import Base
from deskflow.services.known_issues import SQLKnownIssueRepository
import logging

# Setup basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def init_models(drop: bool = False):
    async with engine.begin() as conn:
        if drop:
            logger.info("Dropping tables...")
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    added = await SQLKnownIssueRepository(AsyncSessionLocal).seed()
    logger.info(f"Seeded {added} known issues.")

    await engine.dispose()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the deskflow tables and seed known issues")
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    asyncio.run(init_models(drop=args.drop))
