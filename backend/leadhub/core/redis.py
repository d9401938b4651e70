import redis.asyncio as aioredis
import redis as sync_redis
from leadhub.core.config import settings

# async pool (FastAPI)
redis_pool = aioredis.ConnectionPool.from_url(
    settings.REDIS_URL,
    max_connections=20,
    decode_responses=True,
)


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency: async Redis client"""
    return aioredis.Redis(connection_pool=redis_pool)


# sync pool (scheduler)
sync_redis_pool = sync_redis.ConnectionPool.from_url(
    settings.REDIS_URL,
    max_connections=10,
    decode_responses=True,
)


def get_sync_redis() -> sync_redis.Redis:
    return sync_redis.Redis(connection_pool=sync_redis_pool)


async def check_redis_connection() -> bool:
    try:
        r = await get_redis()
        await r.ping()
        return True
    except Exception:
        return False
