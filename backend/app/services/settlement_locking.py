"""
Settlement locking service.

Serializes settlement attempts for one driver across workers with a Redis
lock. The conditional UPDATE in the ledger store remains the correctness
guarantee; the lock only keeps concurrent attempts from interleaving.
"""

import logging
from contextlib import asynccontextmanager

from redis.exceptions import RedisError, LockError

from backend.app.core.config import settings
from backend.app.core.exceptions import ConflictError
from backend.app.core.redis_client import get_redis

logger = logging.getLogger("ledger.locking")

SETTLEMENT_LOCK_PREFIX = "ledger:settlement-lock:"


def settlement_lock_key(driver_id: str) -> str:
    return f"{SETTLEMENT_LOCK_PREFIX}{driver_id}"


@asynccontextmanager
async def driver_settlement_lock(driver_id: str):
    """
    Hold the settlement lock of a driver for the duration of the block.
    
    Raises:
        ConflictError: lock not acquired within the blocking timeout
    """
    client = await get_redis()
    lock = client.lock(
        settlement_lock_key(driver_id),
        timeout=settings.settlement_lock_timeout_seconds,
        blocking_timeout=settings.settlement_lock_blocking_timeout_seconds,
    )

    try:
        acquired = await lock.acquire()
    except RedisError:
        logger.warning("Settlement lock unavailable for driver %s, relying on row checks", driver_id)
        yield
        return

    if not acquired:
        raise ConflictError(
            "Another settlement is in progress for this driver",
            details={"driver_id": driver_id}
        )

    try:
        yield
    finally:
        try:
            await lock.release()
        except LockError:
            logger.warning("Settlement lock for driver %s expired before release", driver_id)
