import asyncio
import argparse
import logging
from deskflow.core.settings import settings
from deskflow.core.cache import CacheClient
from deskflow.db.session import engine
from deskflow.services.context_store import build_context_store

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def sweep(max_age_minutes: int):
    store = build_context_store(settings.context)
    removed = await store.sweep_expired(max_age_minutes)
    logger.info(f"Removed {removed} conversations idle for more than {max_age_minutes} minutes "
                f"({settings.context.backend} backend).")

    await CacheClient.close()
    await engine.dispose()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete expired conversation contexts")
    parser.add_argument("--max-age", type=int, default=settings.context.max_age_minutes,
                        help="minutes of inactivity after which a context expires")
    args = parser.parse_args()
    asyncio.run(sweep(args.max_age))
