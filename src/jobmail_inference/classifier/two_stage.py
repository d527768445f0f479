"""
Two-stage classifier.

Stage 1 is a cheap boolean gate; most mail is not job-related and stops
there. Stage 2 extracts company, position and status for the rest.

State machine:
    START -> STAGE1 -> NOT_JOB_RELATED
                    -> STAGE2 -> DONE
    FAILED is reachable from STAGE1 and STAGE2 and triggers the fallback chain:
    - Stage 1 failed: rule-based FallbackClassifier
    - Stage 2 failed: job-related, fields from the rule extractor, confidence <= 0.6
    - fallback itself failed: conservative all-null result

Nothing in ``classify`` raises; inference errors are logged and recovered.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import structlog

from jobmail_inference.config import Settings
from jobmail_inference.fallback.classifier import FallbackClassifier
from jobmail_inference.inference.exceptions import InferenceError, InferenceTimeoutError, SessionInitError
from jobmail_inference.inference.invoker import BoundedInvoker
from jobmail_inference.inference.session_pool import SessionPool
from jobmail_inference.llm.prompt_builder import PromptBuilder
from jobmail_inference.models.enums import PipelineStage
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ClassificationResult, ParseResult
from jobmail_inference.monitoring.metrics import fallback_total
from jobmail_inference.validation.exceptions import MalformedOutputError
from jobmail_inference.validation.pipeline import METHOD_CONFIDENCE, NormalizedResponse, ResponseNormalizer

logger = structlog.get_logger(__name__)

STAGE1_ONLY_MAX_CONFIDENCE = 0.6


class ClassifierState(str, Enum):
    START = "start"
    STAGE1 = "stage1"
    NOT_JOB_RELATED = "not_job_related"
    STAGE2 = "stage2"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ClassificationTrace:
    """States visited and why the run failed (if it did)."""

    states: list[ClassifierState] = field(default_factory=lambda: [ClassifierState.START])
    failure_reason: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def state(self) -> ClassifierState:
        return self.states[-1]

    def advance(self, state: ClassifierState) -> None:
        self.states.append(state)


def failure_reason(error: Exception) -> str:
    """Fallback reason label for an inference-path error."""
    if isinstance(error, InferenceTimeoutError):
        return "timeout"
    if isinstance(error, SessionInitError):
        return "session_init"
    if isinstance(error, MalformedOutputError):
        return "malformed"
    return "inference_error"


def guarded_fallback(fallback: FallbackClassifier, email: EmailMessage, reason: str) -> ParseResult:
    """Rule-based result for ``reason``; the conservative result if the rules themselves fail."""
    try:
        return fallback.classify(email, reason=reason)
    except Exception:
        logger.exception("Fallback classifier failed; returning conservative result", reason=reason)
        return ParseResult.conservative()


class TwoStageClassifier:
    """
    Gate-then-extract classification over a SessionPool.

    Admission control (ConcurrencyGate) and caching live one level up in
    ClassificationService; this class always attempts inference.
    """

    def __init__(
        self,
        pool: SessionPool,
        invoker: BoundedInvoker,
        prompt_builder: PromptBuilder,
        normalizer: ResponseNormalizer,
        fallback: FallbackClassifier,
        settings: Settings,
    ):
        self.pool = pool
        self.invoker = invoker
        self.prompt_builder = prompt_builder
        self.normalizer = normalizer
        self.fallback = fallback
        self.settings = settings

    async def classify(self, email: EmailMessage) -> ParseResult:
        result, _ = await self.classify_with_trace(email)
        return result

    async def classify_with_trace(self, email: EmailMessage) -> tuple[ParseResult, ClassificationTrace]:
        trace = ClassificationTrace()

        # === Stage 1: gate ===
        trace.advance(ClassifierState.STAGE1)
        try:
            gate = await self.run_stage1(email)
        except (InferenceError, MalformedOutputError) as e:
            self._fail(trace, PipelineStage.STAGE1, e)
            return self._full_fallback(email, trace.failure_reason), trace

        trace.warnings.extend(gate.warnings)
        if not gate.result.is_job_related:
            trace.advance(ClassifierState.NOT_JOB_RELATED)
            return ParseResult.not_job_related(confidence=METHOD_CONFIDENCE[gate.method]), trace

        # === Stage 2: extraction ===
        trace.advance(ClassifierState.STAGE2)
        try:
            parsed = await self.run_stage2(email)
        except (InferenceError, MalformedOutputError) as e:
            self._fail(trace, PipelineStage.STAGE2, e)
            return self._stage1_only(email), trace

        trace.warnings.extend(parsed.warnings)
        trace.advance(ClassifierState.DONE)
        return parsed.result, trace

    async def run_stage1(self, email: EmailMessage) -> NormalizedResponse[ClassificationResult]:
        """
        Raises:
            InferenceError: timeout, session init or engine failure
            MalformedOutputError: nothing recoverable in the output
        """
        request = self.prompt_builder.build_stage1_request(email)
        session = await self.pool.acquire(PipelineStage.STAGE1, self.settings.STAGE1_MODEL)
        try:
            content = await self.invoker.invoke(session, request, self.settings.STAGE1_TIMEOUT_MS)
        finally:
            self.pool.release(session)

        normalized = self.normalizer.normalize_classification(content)
        if normalized.is_conservative:
            raise MalformedOutputError(
                "Stage 1 output unrecoverable",
                details={"warnings": normalized.warnings},
            )
        return normalized

    async def run_stage2(self, email: EmailMessage) -> NormalizedResponse[ParseResult]:
        """
        Raises:
            InferenceError: timeout, session init or engine failure
            MalformedOutputError: nothing recoverable in the output
        """
        hint = self.fallback.status_hint(email)
        request = self.prompt_builder.build_stage2_request(email, status_hint=hint.value if hint else None)
        session = await self.pool.acquire(PipelineStage.STAGE2, self.settings.STAGE2_MODEL)
        try:
            content = await self.invoker.invoke(session, request, self.settings.STAGE2_TIMEOUT_MS)
        finally:
            self.pool.release(session)

        normalized = self.normalizer.normalize_parse(content)
        if normalized.is_conservative:
            raise MalformedOutputError(
                "Stage 2 output unrecoverable",
                details={"warnings": normalized.warnings},
            )
        return normalized

    async def match_jobs(self, job_a: dict[str, Any], job_b: dict[str, Any]) -> bool:
        """
        Ask the model whether two job descriptions are the same opening.

        Uses the Stage 2 session and deadline. Any failure answers False.
        """
        request = self.prompt_builder.build_match_request(job_a, job_b)
        try:
            session = await self.pool.acquire(PipelineStage.STAGE2, self.settings.STAGE2_MODEL)
            try:
                content = await self.invoker.invoke(session, request, self.settings.STAGE2_TIMEOUT_MS, label="match")
            finally:
                self.pool.release(session)
        except InferenceError as e:
            logger.info("Same-job check unavailable", reason=failure_reason(e))
            return False

        normalized = self.normalizer.normalize_match(content)
        return bool(normalized.result) if not normalized.is_conservative else False

    def _fail(self, trace: ClassificationTrace, stage: PipelineStage, error: Exception) -> None:
        trace.advance(ClassifierState.FAILED)
        trace.failed_stage = stage
        trace.failure_reason = failure_reason(error)
        logger.warning(
            "Classification stage failed",
            stage=stage.value,
            reason=trace.failure_reason,
            error=str(error),
        )

    def _full_fallback(self, email: EmailMessage, reason: Optional[str]) -> ParseResult:
        return guarded_fallback(self.fallback, email, reason or "inference_error")

    def _stage1_only(self, email: EmailMessage) -> ParseResult:
        """Stage 1 said yes but extraction failed: rule-extracted fields, capped confidence."""
        fallback_total.labels(reason="stage2_failed").inc()
        try:
            company, position, status = self.fallback.extract_fields(email)
        except Exception:
            logger.exception("Rule extraction failed after Stage 2 failure")
            return ParseResult.conservative()
        return ParseResult(
            is_job_related=True,
            company=company,
            position=position,
            status=status,
            confidence=STAGE1_ONLY_MAX_CONFIDENCE,
            decision_path="stage1_only",
        )
