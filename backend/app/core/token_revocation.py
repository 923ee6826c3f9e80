"""
Token Revocation using Redis.

Revoked tokens are kept in a blacklist until they would have expired anyway.
"""

import logging

from redis.exceptions import RedisError

from backend.app.core.config import settings
from backend.app.core.redis_client import get_redis

logger = logging.getLogger("ledger.auth")

# Redis key prefix for blacklisted tokens
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"


async def revoke_token(token: str, user_id: str) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.
    
    Args:
        token: The JWT token string to revoke
        user_id: User ID who owns the token
        
    Returns:
        True if successfully revoked, False otherwise
    """
    client = await get_redis()
    try:
        await client.set(
            f"{TOKEN_BLACKLIST_PREFIX}{token}",
            str(user_id),
            ex=settings.access_token_expire_minutes * 60,
        )
        return True
    except RedisError:
        logger.exception("Error revoking token for user %s", user_id)
        return False


async def is_token_revoked(token: str) -> bool:
    """
    Check if a token has been revoked.
    
    Fails open when Redis is unreachable.
    """
    client = await get_redis()
    try:
        exists = await client.exists(f"{TOKEN_BLACKLIST_PREFIX}{token}")
        return exists > 0
    except RedisError:
        logger.warning("Token revocation check unavailable, allowing request")
        return False
