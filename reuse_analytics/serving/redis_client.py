"""
Redis Connection

Shared connection pool for the Redis sync-lock backend. Only initialised
when SYNC_LOCK_BACKEND=redis.
"""

from typing import Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from reuse_analytics.config import get_settings

logger = structlog.get_logger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_settings = get_settings().redis
    _redis_pool = ConnectionPool.from_url(
        redis_settings.get_url(),
        max_connections=redis_settings.max_connections,
        socket_timeout=redis_settings.socket_timeout,
        decode_responses=True,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        logger.error("Redis connection failed", error=str(e))
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


async def check_redis_health() -> bool:
    if _redis_client is None:
        return False
    try:
        return bool(await _redis_client.ping())
    except RedisError as e:
        logger.warning("Redis health check failed", error=str(e))
        return False
