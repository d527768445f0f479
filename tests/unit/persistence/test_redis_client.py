"""
Unit tests for Redis client and connection pooling.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from jobmail_inference.config import Settings
from jobmail_inference.persistence.redis_client import RedisClient, create_async_client

POOL_KWARGS = {
    "max_connections": 50,
    "decode_responses": True,
    "socket_timeout": 5,
    "socket_connect_timeout": 5,
    "retry_on_timeout": True,
}


@pytest.fixture
def mock_settings():
    """Mock settings for testing."""
    settings = MagicMock(spec=Settings)
    settings.REDIS_URL = "redis://localhost:6379/0"
    settings.REDIS_MAX_CONNECTIONS = 50
    return settings


@pytest.fixture(autouse=True)
def reset_pool():
    """Reset the shared pool before each test."""
    RedisClient._async_pool = None
    yield
    RedisClient._async_pool = None


def test_get_async_client_creates_pool_once(mock_settings):
    """Pool is created on first call and shared afterwards."""
    with patch("jobmail_inference.persistence.redis_client.AsyncConnectionPool") as mock_pool:
        mock_pool.from_url.return_value = MagicMock()

        RedisClient.get_async_client(mock_settings)
        RedisClient.get_async_client(mock_settings)

        mock_pool.from_url.assert_called_once_with(mock_settings.REDIS_URL, **POOL_KWARGS)


@pytest.mark.asyncio
async def test_close_async_pool():
    """Closing disconnects and forgets the pool."""
    mock_pool = MagicMock()
    mock_pool.disconnect = AsyncMock()
    RedisClient._async_pool = mock_pool

    await RedisClient.close_async_pool()

    mock_pool.disconnect.assert_awaited_once()
    assert RedisClient._async_pool is None


@pytest.mark.asyncio
async def test_close_without_pool_is_noop():
    await RedisClient.close_async_pool()

    assert RedisClient._async_pool is None


def test_create_async_client_has_own_pool(mock_settings):
    """Standalone clients never touch the shared pool."""
    with patch("jobmail_inference.persistence.redis_client.AsyncRedis") as mock_redis:
        create_async_client(mock_settings)

        mock_redis.from_url.assert_called_once_with(mock_settings.REDIS_URL, **POOL_KWARGS)
    assert RedisClient._async_pool is None
