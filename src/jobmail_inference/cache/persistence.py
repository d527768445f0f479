"""
Optional Redis persistence for the classification namespace.

Only long-TTL classification results are persisted, so a restart does not
trigger a burst of re-inference. Storage Strategy:
- Value: String "jobmail:cache:{key}" holding ParseResult JSON, SETEX with the entry TTL

Persistence is best-effort: Redis errors are logged and reported as a miss
or a failed write, never raised into the classification path.
"""

from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from jobmail_inference.models.output_models import ParseResult

logger = structlog.get_logger(__name__)


class RedisCachePersistence:
    """Persist classification results in Redis keyed by content hash."""

    KEY_PREFIX = "jobmail:cache:"

    def __init__(self, redis_client: AsyncRedis):
        """
        Args:
            redis_client: AsyncRedis client instance (decode_responses=True)
        """
        self.redis = redis_client

    async def load(self, key: str) -> Optional[ParseResult]:
        """
        Returns:
            Persisted ParseResult, or None if absent, expired or unreadable
        """
        try:
            raw = await self.redis.get(f"{self.KEY_PREFIX}{key}")
        except RedisError as e:
            logger.warning("Cache persistence read failed", key=key[:12], error=str(e))
            return None
        if raw is None:
            return None
        try:
            return ParseResult.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning("Discarding unreadable persisted cache value", key=key[:12], error=str(e))
            return None

    async def store(self, key: str, value: ParseResult, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        try:
            await self.redis.setex(name=f"{self.KEY_PREFIX}{key}", time=int(ttl_seconds), value=value.model_dump_json())
        except RedisError as e:
            logger.warning("Cache persistence write failed", key=key[:12], error=str(e))
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(f"{self.KEY_PREFIX}{key}"))
        except RedisError as e:
            logger.warning("Cache persistence delete failed", key=key[:12], error=str(e))
            return False
