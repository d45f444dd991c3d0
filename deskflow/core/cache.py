import logging
from typing import Optional
import redis.asyncio as redis
from deskflow.core.settings import settings

logger = logging.getLogger(__name__)

class CacheClient:
    """Process-wide redis.asyncio connection shared by the Redis-backed stores."""
    _client: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._client is None:
            logger.info(f"Connecting to Redis at {settings.redis.url}")
            cls._client = redis.from_url(settings.redis.url, decode_responses=True)
        return cls._client

    @classmethod
    async def ping(cls) -> bool:
        try:
            return bool(await cls.get_client().ping())
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    @classmethod
    async def close(cls):
        if cls._client:
            await cls._client.aclose()
            cls._client = None
