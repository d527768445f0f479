"""
Classification service: cache, single-flight and admission control
around the two-stage classifier.

Flow per email:
    content key -> memory cache -> (persisted cache) -> per-key lock
    -> concurrency gate -> TwoStageClassifier | FallbackClassifier("overloaded")
    -> cache write

Negative results live in the classification namespace (24h, persisted when
enabled); job-related results with extracted fields live in the parse
namespace (12h), tagged with their company/position for invalidation.
"""

from typing import Optional

import structlog

from jobmail_inference.cache.hasher import content_key
from jobmail_inference.cache.persistence import RedisCachePersistence
from jobmail_inference.cache.tiered import CacheNamespace, TieredCache
from jobmail_inference.classifier.two_stage import TwoStageClassifier, guarded_fallback
from jobmail_inference.config import Settings
from jobmail_inference.fallback.classifier import FallbackClassifier
from jobmail_inference.inference.concurrency import ConcurrencyGate, KeyedLock
from jobmail_inference.models.enums import RecordSource
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult
from jobmail_inference.monitoring.metrics import classifications_total

logger = structlog.get_logger(__name__)

# Degraded results that must not outlive the condition that produced them
UNCACHEABLE_DECISION_PATHS = frozenset({"fallback:overloaded", "conservative"})


class ClassificationService:
    """
    Public ``classify`` entry point.

    Always returns a ParseResult; every inference failure is absorbed by
    the classifier's fallback chain.
    """

    def __init__(
        self,
        classifier: TwoStageClassifier,
        fallback: FallbackClassifier,
        cache: TieredCache,
        gate: ConcurrencyGate,
        settings: Settings,
        persistence: Optional[RedisCachePersistence] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.classifier = classifier
        self.fallback = fallback
        self.cache = cache
        self.gate = gate
        self.settings = settings
        self.persistence = persistence
        self.locks = locks or KeyedLock()

    def cache_key(self, email: EmailMessage) -> str:
        return content_key(
            email.sender,
            email.subject,
            email.body,
            variant=RecordSource.AUTO_INFERRED.value,
            body_prefix_chars=self.settings.CACHE_BODY_PREFIX_CHARS,
        )

    async def classify(self, email: EmailMessage) -> ParseResult:
        key = self.cache_key(email)
        cached = self._lookup(key)
        if cached is not None:
            return cached

        async with self.locks.hold(key):
            # another caller may have filled it while we waited
            cached = self._lookup(key)
            if cached is not None:
                return cached

            persisted = await self._load_persisted(key)
            if persisted is not None:
                self._remember(key, persisted)
                return persisted

            result = await self._compute(email)
            classifications_total.labels(
                decision_path=result.decision_path,
                is_job_related=str(result.is_job_related).lower(),
            ).inc()

            if result.decision_path not in UNCACHEABLE_DECISION_PATHS:
                self._remember(key, result)
                await self._persist(key, result)
            return result

    async def _compute(self, email: EmailMessage) -> ParseResult:
        if not self.gate.try_acquire():
            logger.warning("Inference gate full; degrading to fallback", in_flight=self.gate.in_flight)
            return guarded_fallback(self.fallback, email, "overloaded")
        try:
            return await self.classifier.classify(email)
        finally:
            self.gate.release()

    def _lookup(self, key: str) -> Optional[ParseResult]:
        return self.cache.get(CacheNamespace.CLASSIFICATION, key) or self.cache.get(CacheNamespace.PARSE, key)

    def _remember(self, key: str, result: ParseResult) -> None:
        if result.is_job_related:
            self.cache.set(CacheNamespace.PARSE, key, result, tags=(result.company, result.position))
        else:
            self.cache.set(CacheNamespace.CLASSIFICATION, key, result)

    async def _load_persisted(self, key: str) -> Optional[ParseResult]:
        if self.persistence is None:
            return None
        result = await self.persistence.load(key)
        if result is not None:
            logger.debug("Classification restored from persisted cache", key=key[:12])
        return result

    async def _persist(self, key: str, result: ParseResult) -> None:
        if self.persistence is None or result.is_job_related:
            return
        ttl = self.cache.ttl_for(CacheNamespace.CLASSIFICATION, RecordSource.AUTO_INFERRED)
        await self.persistence.store(key, result, int(ttl))
