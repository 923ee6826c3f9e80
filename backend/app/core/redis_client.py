"""
Redis connection for the ledger service.

Redis backs the token revocation list and the per-driver settlement lock.
Both fail open when Redis is unreachable; the database stays authoritative.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError
from backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Current Redis client.
    
    Looked up at call time so tests can swap the module-level client.
    """
    return redis_client


async def ping_redis() -> bool:
    """True when Redis answers a PING."""
    try:
        return bool(await redis_client.ping())
    except RedisError:
        return False


async def close_redis() -> None:
    """Release the connection pool on shutdown."""
    await redis_client.aclose()
