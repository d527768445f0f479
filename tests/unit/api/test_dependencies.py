"""
Unit tests for API dependency injection.
"""

from unittest.mock import MagicMock

import pytest

from jobmail_inference.api import dependencies
from jobmail_inference.api.dependencies import (
    get_inference_engine,
    get_record_service,
    get_redis_client,
    get_service,
    get_settings,
)
from jobmail_inference.config import Settings
from jobmail_inference.llm.ollama_client import OllamaEngine
from jobmail_inference.persistence.memory_store import InMemoryRecordStore
from jobmail_inference.service import JobMailService


@pytest.fixture(autouse=True)
def reset_singletons():
    """Singletons built here must not leak into other tests."""
    get_service.cache_clear()
    get_inference_engine.cache_clear()
    yield
    get_service.cache_clear()
    get_inference_engine.cache_clear()


def test_get_settings():
    """Test settings singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    # Should be same instance (cached)
    assert settings1 is settings2
    assert isinstance(settings1, Settings)


def test_get_inference_engine():
    """Test inference engine singleton."""
    engine1 = get_inference_engine()
    engine2 = get_inference_engine()

    assert engine1 is engine2
    assert isinstance(engine1, OllamaEngine)


def test_redis_not_needed_with_memory_store(monkeypatch):
    settings = Settings(RECORD_STORE_BACKEND="memory", CACHE_PERSISTENCE_ENABLED=False)
    monkeypatch.setattr(dependencies, "get_settings", lambda: settings)

    assert get_redis_client() is None


def test_redis_client_from_shared_pool(monkeypatch):
    settings = Settings(RECORD_STORE_BACKEND="redis")
    client = MagicMock()
    get_async_client = MagicMock(return_value=client)
    monkeypatch.setattr(dependencies, "get_settings", lambda: settings)
    monkeypatch.setattr(dependencies.RedisClient, "get_async_client", get_async_client)

    assert get_redis_client() is client
    get_async_client.assert_called_once_with(settings)


def test_get_service(monkeypatch):
    """Test service singleton shares the engine singleton."""
    monkeypatch.setattr(
        dependencies, "get_settings", lambda: Settings(RECORD_STORE_BACKEND="memory", CACHE_PERSISTENCE_ENABLED=False)
    )

    service1 = get_service()
    service2 = get_service()

    assert service1 is service2
    assert isinstance(service1, JobMailService)
    assert service1.engine is get_inference_engine()
    assert isinstance(service1.store, InMemoryRecordStore)
    assert service1.redis is None


def test_get_record_service():
    service = MagicMock(spec=JobMailService)
    service.records = MagicMock()

    assert get_record_service(service) is service.records
