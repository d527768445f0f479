"""
Unit tests for BoundedInvoker (deadline race around engine calls).
"""

import asyncio
import time

import pytest

from jobmail_inference.inference.exceptions import InferenceError, InferenceTimeoutError
from jobmail_inference.inference.invoker import BoundedInvoker
from jobmail_inference.inference.session_pool import SessionPool
from jobmail_inference.llm.exceptions import LLMGenerationError, LLMSessionInvalidError
from jobmail_inference.llm.prompt_builder import PromptBuilder
from jobmail_inference.models.enums import PipelineStage, SessionState


class TestBoundedInvoker:

    @pytest.fixture(autouse=True)
    def _setup(self, test_settings, fake_engine, create_test_email):
        self.engine = fake_engine
        self.pool = SessionPool(fake_engine, test_settings)
        self.invoker = BoundedInvoker()
        self.request = PromptBuilder(test_settings).build_stage1_request(create_test_email())

    async def _session(self):
        return await self.pool.acquire(PipelineStage.STAGE1, "gate:1b")

    @pytest.mark.asyncio
    async def test_returns_raw_text(self):
        text = await self.invoker.invoke(await self._session(), self.request, deadline_ms=500)

        assert text == self.engine.responses["stage1"]
        assert self.invoker.abandoned_count == 0

    @pytest.mark.asyncio
    async def test_deadline_wins_over_slow_engine(self):
        self.engine.delays["stage1"] = 5.0
        session = await self._session()

        start = time.perf_counter()
        with pytest.raises(InferenceTimeoutError) as exc_info:
            await self.invoker.invoke(session, self.request, deadline_ms=50)
        elapsed = time.perf_counter() - start

        assert elapsed < 1.0
        assert exc_info.value.deadline_ms == 50
        assert exc_info.value.stage == "stage1"
        # a timeout alone does not poison the session
        assert session.is_ready

    @pytest.mark.asyncio
    async def test_abandoned_call_is_reaped(self):
        self.engine.delays["stage1"] = 5.0

        with pytest.raises(InferenceTimeoutError):
            await self.invoker.invoke(await self._session(), self.request, deadline_ms=20)

        await asyncio.sleep(0.05)
        assert self.engine.cancelled == 1
        assert self.invoker.abandoned_count == 0

    @pytest.mark.asyncio
    async def test_label_overrides_stage(self):
        self.engine.delays["stage1"] = 5.0

        with pytest.raises(InferenceTimeoutError) as exc_info:
            await self.invoker.invoke(await self._session(), self.request, deadline_ms=10, label="match")

        assert exc_info.value.stage == "match"

    @pytest.mark.asyncio
    async def test_engine_error_is_wrapped(self):
        self.engine.errors["stage1"] = LLMGenerationError("Ollama error: 400")
        session = await self._session()

        with pytest.raises(InferenceError) as exc_info:
            await self.invoker.invoke(session, self.request, deadline_ms=500)

        assert not isinstance(exc_info.value, InferenceTimeoutError)
        assert isinstance(exc_info.value.__cause__, LLMGenerationError)
        assert exc_info.value.details["error_type"] == "LLMGenerationError"
        assert session.is_ready

    @pytest.mark.asyncio
    async def test_invalid_handle_marks_session_unhealthy(self):
        self.engine.errors["stage1"] = LLMSessionInvalidError("context has been disposed")
        session = await self._session()

        with pytest.raises(InferenceError):
            await self.invoker.invoke(session, self.request, deadline_ms=500)

        assert session.state is SessionState.UNHEALTHY

        replacement = await self._session()
        assert replacement is not session
