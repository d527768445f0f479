"""
Inference session pool.

Hands out one ready session per pipeline stage, hiding model load and
context allocation cost from callers. A session is recycled when:
- its use counter reaches SESSION_MAX_USES,
- it was marked unhealthy by a failed invocation,
- the caller asks for a different model path.

Model handles are shared across stages by model path; the pool is the
only owner and disposes them when no session uses them (or on shutdown).
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from jobmail_inference.config import Settings
from jobmail_inference.inference.exceptions import SessionInitError
from jobmail_inference.llm.base_client import ContextHandle, InferenceEngine, ModelHandle
from jobmail_inference.llm.exceptions import LLMSessionInvalidError
from jobmail_inference.models.enums import PipelineStage, SessionState
from jobmail_inference.models.llm_models import LLMGenerationRequest, LLMGenerationResponse
from jobmail_inference.monitoring.metrics import session_recycles_total

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StageConfig:
    """Context sizing for one stage."""

    stage: PipelineStage
    context_size: int
    batch_size: int

    @classmethod
    def from_settings(cls, stage: PipelineStage, settings: Settings) -> "StageConfig":
        if stage is PipelineStage.STAGE1:
            return cls(stage, settings.STAGE1_CONTEXT_SIZE, settings.STAGE1_BATCH_SIZE)
        return cls(stage, settings.STAGE2_CONTEXT_SIZE, settings.STAGE2_BATCH_SIZE)


class InferenceSession:
    """
    A context bound to one stage, with an explicit lifecycle.

    UNINITIALIZED -> READY -> UNHEALTHY -> DISPOSED
                           \\-----------> DISPOSED
    """

    def __init__(self, stage: PipelineStage, context: ContextHandle, engine: InferenceEngine):
        self.stage = stage
        self.context = context
        self._engine = engine
        self.state = SessionState.UNINITIALIZED
        self.uses = 0
        self.unhealthy_reason: Optional[str] = None

    @property
    def session_id(self) -> int:
        return self.context.handle_id

    @property
    def model_path(self) -> str:
        return self.context.model.model_path

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    def mark_ready(self) -> None:
        if self.state is not SessionState.UNINITIALIZED:
            raise RuntimeError(f"Cannot mark {self.state.value} session ready")
        self.state = SessionState.READY

    def mark_unhealthy(self, reason: str) -> None:
        if self.state is SessionState.READY:
            self.state = SessionState.UNHEALTHY
            self.unhealthy_reason = reason
            logger.warning(
                "Session marked unhealthy",
                stage=self.stage.value,
                session_id=self.session_id,
                reason=reason,
            )

    async def prompt(self, request: LLMGenerationRequest) -> LLMGenerationResponse:
        """Run one generation. Only READY sessions may be prompted."""
        if not self.is_ready:
            raise LLMSessionInvalidError(
                f"Session is {self.state.value}",
                details={"session_id": self.session_id, "stage": self.stage.value},
            )
        return await self._engine.generate(self.context, request)

    async def dispose(self) -> None:
        if self.state is SessionState.DISPOSED:
            return
        self.state = SessionState.DISPOSED
        await self._engine.dispose_context(self.context)

    def __repr__(self) -> str:
        return (
            f"InferenceSession(stage={self.stage.value}, model={self.model_path}, "
            f"state={self.state.value}, uses={self.uses})"
        )


class SessionPool:
    """
    Per-stage session cache over an InferenceEngine.

    Acquisition is serialized per stage; stage1 and stage2 never wait on
    each other except while a shared model handle is being loaded.
    """

    def __init__(self, engine: InferenceEngine, settings: Settings):
        self.engine = engine
        self.max_uses = settings.SESSION_MAX_USES
        self._stage_configs = {stage: StageConfig.from_settings(stage, settings) for stage in PipelineStage}
        self._sessions: dict[PipelineStage, InferenceSession] = {}
        self._models: dict[str, ModelHandle] = {}
        self._stage_locks = {stage: asyncio.Lock() for stage in PipelineStage}
        self._model_lock = asyncio.Lock()

        logger.info(
            "Session pool initialized",
            engine=repr(engine),
            max_uses=self.max_uses,
            stages={s.value: (c.context_size, c.batch_size) for s, c in self._stage_configs.items()},
        )

    async def acquire(self, stage: PipelineStage, model_path: str) -> InferenceSession:
        """
        Return a ready session for ``stage`` running ``model_path``.

        Raises:
            SessionInitError: model load or context allocation failed
        """
        async with self._stage_locks[stage]:
            session = self._sessions.get(stage)
            if session is not None:
                reason = self._recycle_reason(session, model_path)
                if reason is None:
                    session.uses += 1
                    return session
                await self._retire(stage, session, reason)

            session = await self._create_session(stage, model_path)
            session.uses = 1
            self._sessions[stage] = session
            return session

    def release(self, session: InferenceSession) -> None:
        """Sessions stay pooled; disposal only happens in acquire() or shutdown()."""

    def _recycle_reason(self, session: InferenceSession, model_path: str) -> Optional[str]:
        if not session.is_ready:
            return "unhealthy"
        if session.model_path != model_path:
            return "model_changed"
        if session.uses >= self.max_uses:
            return "max_uses"
        return None

    async def _retire(self, stage: PipelineStage, session: InferenceSession, reason: str) -> None:
        logger.info(
            "Recycling session",
            stage=stage.value,
            session_id=session.session_id,
            uses=session.uses,
            reason=reason,
        )
        session_recycles_total.labels(stage=stage.value, reason=reason).inc()
        del self._sessions[stage]
        await session.dispose()
        if reason == "model_changed":
            await self._dispose_model_if_unused(session.model_path)

    async def _create_session(self, stage: PipelineStage, model_path: str) -> InferenceSession:
        config = self._stage_configs[stage]
        try:
            model = await self._get_model(model_path)
            try:
                context = await self.engine.create_context(model, config.context_size, config.batch_size)
            except LLMSessionInvalidError:
                # shared model went bad underneath us; reload once
                self._models.pop(model_path, None)
                model = await self._get_model(model_path)
                context = await self.engine.create_context(model, config.context_size, config.batch_size)
        except Exception as e:
            logger.error(
                "Session construction failed",
                stage=stage.value,
                model_path=model_path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SessionInitError(stage.value, model_path, str(e)) from e

        session = InferenceSession(stage, context, self.engine)
        session.mark_ready()
        logger.info(
            "Session created",
            stage=stage.value,
            session_id=session.session_id,
            model_path=model_path,
            context_size=config.context_size,
        )
        return session

    async def _get_model(self, model_path: str) -> ModelHandle:
        async with self._model_lock:
            model = self._models.get(model_path)
            if model is None or model.disposed:
                model = await self.engine.load_model(model_path)
                self._models[model_path] = model
            return model

    async def _dispose_model_if_unused(self, model_path: str) -> None:
        async with self._model_lock:
            if any(s.model_path == model_path for s in self._sessions.values()):
                return
            model = self._models.pop(model_path, None)
            if model is not None:
                await self.engine.dispose_model(model)

    async def shutdown(self) -> None:
        """Dispose every session, then every model."""
        for stage in list(self._sessions):
            await self._sessions.pop(stage).dispose()
        for model in list(self._models.values()):
            await self.engine.dispose_model(model)
        self._models.clear()
        logger.info("Session pool shut down")

    def stats(self) -> dict[str, Any]:
        return {
            stage.value: {
                "state": session.state.value,
                "uses": session.uses,
                "model_path": session.model_path,
            }
            for stage, session in self._sessions.items()
        } | {"models_loaded": len(self._models)}
