"""Unit test fixtures (mocks and stubs).

Provides a scripted inference engine, a controllable clock and mock Redis
clients for testing without Ollama or Redis.
"""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from jobmail_inference.config import Settings
from jobmail_inference.llm.base_client import ContextHandle, InferenceEngine, ModelHandle
from jobmail_inference.llm.exceptions import LLMSessionInvalidError
from jobmail_inference.models.llm_models import LLMGenerationRequest, LLMGenerationResponse
from jobmail_inference.persistence.memory_store import InMemoryRecordStore
from jobmail_inference.service import JobMailService, build_service

STAGE1_JOB = '{"is_job": true, "risk_level": "low"}'
STAGE1_NOT_JOB = '{"is_job": false, "risk_level": "none"}'
STAGE2_FULL = '{"company": "Acme", "position": "Data Analyst", "status": "Applied", "confidence": 0.92}'
MATCH_YES = '{"same_job": true}'

_KIND_BY_SCHEMA_TITLE = {
    "stage1_classification": "stage1",
    "stage2_extraction": "stage2",
    "stage3_match": "match",
}


class FakeInferenceEngine(InferenceEngine):
    """
    Scripted InferenceEngine.

    Requests are told apart by the title of the JSON Schema they carry
    (stage1 / stage2 / match). Per kind, tests can set the canned output,
    a delay before answering, or an exception to raise.
    """

    def __init__(self, responses: Optional[dict[str, str]] = None):
        self.responses = {"stage1": STAGE1_JOB, "stage2": STAGE2_FULL, "match": MATCH_YES}
        self.responses.update(responses or {})
        self.delays: dict[str, float] = {}
        self.errors: dict[str, Exception] = {}
        self.load_errors: dict[str, Exception] = {}
        self.healthy = True

        self.loaded: list[str] = []
        self.contexts: list[ContextHandle] = []
        self.requests: list[tuple[str, LLMGenerationRequest]] = []
        self.disposed_contexts: list[ContextHandle] = []
        self.disposed_models: list[ModelHandle] = []
        self.cancelled = 0
        self.closed = False

    @staticmethod
    def kind_of(request: LLMGenerationRequest) -> str:
        return _KIND_BY_SCHEMA_TITLE[(request.format_schema or {}).get("title", "")]

    def calls(self, kind: str) -> int:
        return sum(1 for k, _ in self.requests if k == kind)

    async def load_model(self, model_path: str) -> ModelHandle:
        self.loaded.append(model_path)
        if model_path in self.load_errors:
            raise self.load_errors[model_path]
        return ModelHandle(model_path=model_path)

    async def create_context(self, model: ModelHandle, context_size: int, batch_size: int) -> ContextHandle:
        if model.disposed:
            raise LLMSessionInvalidError("model disposed")
        context = ContextHandle(model=model, context_size=context_size, batch_size=batch_size)
        self.contexts.append(context)
        return context

    async def generate(self, context: ContextHandle, request: LLMGenerationRequest) -> LLMGenerationResponse:
        kind = self.kind_of(request)
        self.requests.append((kind, request))

        delay = self.delays.get(kind)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if kind in self.errors:
            raise self.errors[kind]
        return LLMGenerationResponse(
            content=self.responses[kind],
            model_version=context.model.model_path,
            completion_tokens=len(self.responses[kind]) // 4,
        )

    async def dispose_context(self, context: ContextHandle) -> None:
        self.disposed_contexts.append(context)
        await super().dispose_context(context)

    async def dispose_model(self, model: ModelHandle) -> None:
        self.disposed_models.append(model)
        await super().dispose_model(model)

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic-style clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_engine() -> FakeInferenceEngine:
    """Engine answering job-related / Acme / Data Analyst / Applied by default."""
    return FakeInferenceEngine()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def create_test_service(test_settings: Settings, fake_engine: FakeInferenceEngine):
    """Factory fixture wiring a full JobMailService over the fake engine and an in-memory store.

    Usage:
        def test_something(create_test_service):
            service = create_test_service()
    """
    def _create(settings: Optional[Settings] = None, engine: Optional[InferenceEngine] = None) -> JobMailService:
        return build_service(
            settings or test_settings,
            engine=engine or fake_engine,
            store=InMemoryRecordStore(),
        )

    return _create


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.set = AsyncMock(return_value=True)
    mock.setex = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.mget = AsyncMock(return_value=[])
    mock.rpush = AsyncMock(return_value=1)
    mock.lrange = AsyncMock(return_value=[])
    mock.delete = AsyncMock(return_value=1)
    mock.zadd = AsyncMock(return_value=1)
    mock.zrem = AsyncMock(return_value=1)
    mock.zrange = AsyncMock(return_value=[])
    mock.zrevrange = AsyncMock(return_value=[])
    mock.zrevrangebyscore = AsyncMock(return_value=[])
    mock.ping = AsyncMock(return_value=True)
    return mock
