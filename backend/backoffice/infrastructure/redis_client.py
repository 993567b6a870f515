"""
Shared async Redis connection, used by the realtime relay.
Returns None (and the caller degrades) when Redis is disabled or unreachable.
"""

from typing import Optional

import redis.asyncio as redis

from backoffice.core.config import get_settings
from backoffice.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create the Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


async def redis_status() -> dict:
    """Connection status for the health endpoint."""
    if not settings.REDIS_ENABLED:
        return {"status": "disabled"}
    if _redis_client is None:
        return {"status": "not_connected"}
    try:
        await _redis_client.ping()
        return {"status": "connected"}
    except Exception as e:
        return {"status": "error", "error": str(e)}
