"""
Redis client with connection pooling for the record store and cache persistence.

Uses redis-py's asyncio client. The API process shares one pool for its
lifetime; Celery batches run on a fresh event loop each time and get a
dedicated client that is closed with the loop.
"""

from typing import Optional

import structlog
from redis.asyncio import ConnectionPool as AsyncConnectionPool
from redis.asyncio import Redis as AsyncRedis

from jobmail_inference.config import Settings

logger = structlog.get_logger(__name__)


def _pool_kwargs(settings: Settings) -> dict:
    return {
        "max_connections": settings.REDIS_MAX_CONNECTIONS,
        "decode_responses": True,  # Auto-decode bytes to str
        "socket_timeout": 5,
        "socket_connect_timeout": 5,
        "retry_on_timeout": True,
    }


class RedisClient:
    """
    Process-wide async Redis pool for the API layer.
    """

    _async_pool: Optional[AsyncConnectionPool] = None

    @classmethod
    def get_async_client(cls, settings: Settings) -> AsyncRedis:
        """
        Get asynchronous Redis client backed by the shared pool.

        Args:
            settings: Application settings

        Returns:
            AsyncRedis client instance
        """
        if cls._async_pool is None:
            cls._async_pool = AsyncConnectionPool.from_url(settings.REDIS_URL, **_pool_kwargs(settings))
            logger.info("Initialized Redis async connection pool", max_connections=settings.REDIS_MAX_CONNECTIONS)

        return AsyncRedis(connection_pool=cls._async_pool)

    @classmethod
    async def close_async_pool(cls) -> None:
        """Close async connection pool (cleanup on shutdown)."""
        if cls._async_pool is not None:
            await cls._async_pool.disconnect()
            cls._async_pool = None
            logger.info("Closed Redis async connection pool")


def create_async_client(settings: Settings) -> AsyncRedis:
    """
    Standalone client with its own pool, bound to the current event loop.

    Caller closes it with ``await client.aclose()``.
    """
    return AsyncRedis.from_url(settings.REDIS_URL, **_pool_kwargs(settings))
