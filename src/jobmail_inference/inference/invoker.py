"""
Bounded inference invoker.

Runs one generation under a hard wall-clock deadline by racing the
engine call against a timer. The engine is not trusted to honor
cancellation: when the timer wins, the call is abandoned (cancel is
requested but never awaited) and the caller gets InferenceTimeoutError
immediately.
"""

import asyncio
import time

import structlog

from jobmail_inference.inference.exceptions import InferenceError, InferenceTimeoutError
from jobmail_inference.inference.session_pool import InferenceSession
from jobmail_inference.llm.exceptions import LLMSessionInvalidError
from jobmail_inference.models.llm_models import LLMGenerationRequest
from jobmail_inference.monitoring.metrics import inference_latency_seconds, inference_timeouts_total

logger = structlog.get_logger(__name__)


class BoundedInvoker:
    """Deadline race around ``InferenceSession.prompt``."""

    def __init__(self):
        # strong refs so abandoned tasks are not garbage collected mid-flight
        self._abandoned: set[asyncio.Task] = set()

    @property
    def abandoned_count(self) -> int:
        return len(self._abandoned)

    async def invoke(
        self,
        session: InferenceSession,
        request: LLMGenerationRequest,
        deadline_ms: int,
        label: str | None = None,
    ) -> str:
        """
        Generate text or fail within ``deadline_ms``.

        Args:
            session: Ready session from the pool
            request: Stage request
            deadline_ms: Hard deadline in milliseconds
            label: Metric/log label (defaults to the session's stage)

        Returns:
            Raw generated text

        Raises:
            InferenceTimeoutError: deadline elapsed first
            InferenceError: the engine failed (unusable handles also mark the session unhealthy)
        """
        label = label or session.stage.value
        start = time.perf_counter()
        inference = asyncio.create_task(session.prompt(request))
        timer = asyncio.create_task(asyncio.sleep(deadline_ms / 1000.0))

        try:
            done, _ = await asyncio.wait({inference, timer}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            timer.cancel()
            self._abandon(inference)
            raise

        elapsed = time.perf_counter() - start
        if inference not in done:
            self._abandon(inference)
            inference_timeouts_total.labels(stage=label).inc()
            inference_latency_seconds.labels(stage=label, outcome="timeout").observe(elapsed)
            logger.warning(
                "Inference deadline exceeded",
                stage=label,
                deadline_ms=deadline_ms,
                session_id=session.session_id,
            )
            raise InferenceTimeoutError(label, deadline_ms)

        timer.cancel()
        if inference.cancelled():
            raise InferenceError(f"{label} inference was cancelled", details={"stage": label})
        error = inference.exception()
        if error is not None:
            inference_latency_seconds.labels(stage=label, outcome="error").observe(elapsed)
            if isinstance(error, LLMSessionInvalidError):
                session.mark_unhealthy(str(error))
            logger.warning(
                "Inference failed",
                stage=label,
                error=str(error),
                error_type=type(error).__name__,
            )
            raise InferenceError(
                f"{label} inference failed: {error}",
                details={"stage": label, "error_type": type(error).__name__},
            ) from error

        inference_latency_seconds.labels(stage=label, outcome="ok").observe(elapsed)
        response = inference.result()
        logger.debug(
            "Inference completed",
            stage=label,
            latency_ms=int(elapsed * 1000),
            completion_tokens=response.completion_tokens,
        )
        return response.content

    def _abandon(self, task: asyncio.Task) -> None:
        """Let ``task`` finish on its own; never join it from the caller path."""
        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("Abandoned inference finished with error", error_type=type(error).__name__)
