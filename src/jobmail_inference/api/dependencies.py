"""
FastAPI dependency injection for the job-mail service.

Provides singleton instances of expensive resources (inference engine,
Redis pool, the wired JobMailService). Nothing below the API layer holds
process-wide state.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis as AsyncRedis

from jobmail_inference.config import Settings, settings
from jobmail_inference.llm.base_client import InferenceEngine
from jobmail_inference.llm.ollama_client import OllamaEngine
from jobmail_inference.persistence.redis_client import RedisClient
from jobmail_inference.records.service import RecordService
from jobmail_inference.service import JobMailService, build_service, needs_redis


@lru_cache()
def get_settings() -> Settings:
    """
    Get settings singleton.

    Returns:
        Settings instance
    """
    return settings


@lru_cache()
def get_inference_engine() -> InferenceEngine:
    """
    Get singleton inference engine.

    Constructed lazily on first use; the httpx client inside it is only
    opened on the first request to Ollama.

    Returns:
        OllamaEngine instance
    """
    app_settings = get_settings()
    return OllamaEngine(
        base_url=app_settings.OLLAMA_BASE_URL,
        timeout=app_settings.OLLAMA_TIMEOUT,
        max_retries=1,  # the invoker deadline bounds latency, not retries
    )


def get_redis_client() -> Optional[AsyncRedis]:
    """Shared async Redis client, or None when no component needs Redis."""
    app_settings = get_settings()
    if not needs_redis(app_settings):
        return None
    return RedisClient.get_async_client(app_settings)


@lru_cache()
def get_service() -> JobMailService:
    """
    Get the singleton JobMailService.

    Session pool, cache and locks live for the process lifetime and are
    shared by every request.

    Returns:
        JobMailService instance
    """
    return build_service(
        get_settings(),
        engine=get_inference_engine(),
        redis_client=get_redis_client(),
    )


def get_record_service(service: JobMailService = Depends(get_service)) -> RecordService:
    return service.records
