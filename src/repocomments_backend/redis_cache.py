"""
Redis client dependency.

The async client backs the bearer-session credential store and the
pub/sub relay used for multi-instance broadcasting.
"""

import os
import redis.asyncio as aioredis

# Get Redis configuration from environment
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = int(os.environ.get('REDIS_PORT', '6379'))
REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD', '')
REDIS_DB = int(os.environ.get('REDIS_DB', '0'))

# Connections are opened lazily on first command
_async_redis_client = aioredis.Redis(
    host=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD if REDIS_PASSWORD else None,
    db=REDIS_DB,
    decode_responses=True,
    socket_connect_timeout=5,
    socket_timeout=5,
    retry_on_timeout=True,
)


async def get_redis_client() -> aioredis.Redis:
    """
    Get async Redis client for direct access.

    Example:
        >>> redis = await get_redis_client()
        >>> await redis.get("session:<hash>")
    """
    return _async_redis_client
