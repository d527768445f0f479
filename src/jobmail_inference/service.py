"""
JobMailService: the public entry points, wired from Settings.

    classify(email) -> ParseResult
    create_manual_record(data) -> CreateRecordResult
    edit_record(job_id, updates) -> EditRecordResult
    resolve_conflict(conflict_id, decision) -> ResolveConflictResult
    ingest(email) -> IngestResult
    resolve_duplicate(action, primary_id, secondary_id) -> JobRecord
    merge_records(primary_id, secondary_id) -> JobRecord

All asyncio primitives (locks, gate, sweeper) belong to the event loop the
service is used on; build one service per loop.
"""

import asyncio
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from redis.asyncio import Redis as AsyncRedis

from jobmail_inference.cache.persistence import RedisCachePersistence
from jobmail_inference.cache.tiered import TieredCache
from jobmail_inference.classifier.service import ClassificationService
from jobmail_inference.classifier.two_stage import TwoStageClassifier
from jobmail_inference.config import Settings
from jobmail_inference.fallback.classifier import FallbackClassifier
from jobmail_inference.inference.concurrency import ConcurrencyGate, KeyedLock
from jobmail_inference.inference.invoker import BoundedInvoker
from jobmail_inference.inference.session_pool import SessionPool
from jobmail_inference.llm.base_client import InferenceEngine
from jobmail_inference.llm.ollama_client import OllamaEngine
from jobmail_inference.llm.prompt_builder import PromptBuilder
from jobmail_inference.models.conflict_models import (
    ConflictDecision,
    ConflictRecord,
    CreateRecordResult,
    EditRecordResult,
    IngestResult,
    ResolveConflictResult,
)
from jobmail_inference.models.enums import DuplicateAction
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult
from jobmail_inference.models.record_models import AuditEntry, JobRecord, ManualRecordInput, RecordUpdate
from jobmail_inference.persistence.base import RecordStore
from jobmail_inference.persistence.memory_store import InMemoryRecordStore
from jobmail_inference.persistence.redis_client import create_async_client
from jobmail_inference.persistence.redis_store import RedisRecordStore
from jobmail_inference.reconcile.detector import DuplicateDetector
from jobmail_inference.reconcile.resolver import ConflictResolver
from jobmail_inference.records.service import RecordService
from jobmail_inference.validation.pipeline import ResponseNormalizer

logger = structlog.get_logger(__name__)


class JobMailService:
    """Facade over classification and record reconciliation."""

    def __init__(
        self,
        classification: ClassificationService,
        records: RecordService,
        pool: SessionPool,
        engine: InferenceEngine,
        redis_client: Optional[AsyncRedis] = None,
        owns_redis: bool = False,
    ):
        self.classification = classification
        self.records = records
        self.pool = pool
        self.engine = engine
        self.redis = redis_client
        self._owns_redis = owns_redis

    @property
    def cache(self) -> TieredCache:
        return self.classification.cache

    @property
    def store(self) -> RecordStore:
        return self.records.store

    # === Classification ===

    async def classify(self, email: EmailMessage) -> ParseResult:
        return await self.classification.classify(email)

    async def classify_batch(self, emails: list[EmailMessage]) -> list[ParseResult]:
        """Classify concurrently; emails beyond the gate limit take the fallback path."""
        return list(await asyncio.gather(*(self.classification.classify(e) for e in emails)))

    # === Records ===

    async def create_manual_record(self, data: Union[ManualRecordInput, dict[str, Any]]) -> CreateRecordResult:
        return await self.records.create_manual_record(data)

    async def edit_record(self, job_id: str, updates: Union[RecordUpdate, dict[str, Any]]) -> EditRecordResult:
        return await self.records.edit_record(job_id, updates)

    async def resolve_conflict(
        self, conflict_id: str, decision: Union[ConflictDecision, dict[str, Any]]
    ) -> ResolveConflictResult:
        return await self.records.resolve_conflict(conflict_id, decision)

    async def ingest(self, email: EmailMessage) -> IngestResult:
        return await self.records.ingest(email)

    async def resolve_duplicate(
        self, action: Union[DuplicateAction, str], primary_id: str, secondary_id: str
    ) -> JobRecord:
        return await self.records.resolve_duplicate(action, primary_id, secondary_id)

    async def merge_records(self, primary_id: str, secondary_id: str) -> JobRecord:
        return await self.records.merge_records(primary_id, secondary_id)

    async def get_record(self, job_id: str) -> JobRecord:
        return await self.records.get_record(job_id)

    async def list_conflicts(self, job_id: Optional[str] = None) -> list[ConflictRecord]:
        return await self.records.list_conflicts(job_id)

    async def get_audit(self, job_id: str) -> list[AuditEntry]:
        return await self.records.get_audit(job_id)

    # === Lifecycle ===

    def start(self) -> None:
        """Start background maintenance (cache sweeper). Requires a running loop."""
        self.cache.start_sweeper()

    async def close(self) -> None:
        await self.cache.stop_sweeper()
        await self.pool.shutdown()
        await self.engine.close()
        await self.store.close()
        if self.redis is not None and self._owns_redis:
            await self.redis.aclose()
        logger.info("JobMailService closed")

    def stats(self) -> dict[str, Any]:
        return {
            "cache": self.cache.stats(),
            "sessions": self.pool.stats(),
            "in_flight": self.classification.gate.in_flight,
        }


def needs_redis(settings: Settings) -> bool:
    return settings.RECORD_STORE_BACKEND == "redis" or settings.CACHE_PERSISTENCE_ENABLED


def build_service(
    settings: Settings,
    engine: Optional[InferenceEngine] = None,
    store: Optional[RecordStore] = None,
    redis_client: Optional[AsyncRedis] = None,
) -> JobMailService:
    """
    Wire every component from settings.

    Args:
        settings: Application settings
        engine: Inference engine (OllamaEngine from settings if None)
        store: Record store (from RECORD_STORE_BACKEND if None)
        redis_client: Shared AsyncRedis; a private client is created when
            Redis is needed and none is given

    Returns:
        JobMailService (not started; call ``start`` on a running loop)
    """
    if settings.RECORD_STORE_BACKEND not in ("memory", "redis"):
        raise ValueError(f"Unknown RECORD_STORE_BACKEND: {settings.RECORD_STORE_BACKEND}")

    if engine is None:
        engine = OllamaEngine(base_url=settings.OLLAMA_BASE_URL, timeout=settings.OLLAMA_TIMEOUT)

    owns_redis = False
    if redis_client is None and needs_redis(settings) and (store is None or settings.CACHE_PERSISTENCE_ENABLED):
        redis_client = create_async_client(settings)
        owns_redis = True

    pool = SessionPool(engine, settings)
    fallback = FallbackClassifier()
    classifier = TwoStageClassifier(
        pool=pool,
        invoker=BoundedInvoker(),
        prompt_builder=PromptBuilder(settings),
        normalizer=ResponseNormalizer(Path(settings.JSON_SCHEMA_DIR) if settings.JSON_SCHEMA_DIR else None),
        fallback=fallback,
        settings=settings,
    )
    cache = TieredCache(settings)
    persistence = RedisCachePersistence(redis_client) if settings.CACHE_PERSISTENCE_ENABLED else None
    classification = ClassificationService(
        classifier=classifier,
        fallback=fallback,
        cache=cache,
        gate=ConcurrencyGate(settings.INFERENCE_MAX_CONCURRENT),
        settings=settings,
        persistence=persistence,
    )

    if store is None:
        store = RedisRecordStore(redis_client) if settings.RECORD_STORE_BACKEND == "redis" else InMemoryRecordStore()

    records = RecordService(
        store=store,
        detector=DuplicateDetector(store, settings, extractor=classification.classify),
        resolver=ConflictResolver(settings),
        cache=cache,
        settings=settings,
        classification=classification,
        locks=KeyedLock(),
    )

    logger.info(
        "JobMailService built",
        engine=repr(engine),
        store=type(store).__name__,
        cache_persistence=persistence is not None,
    )
    return JobMailService(classification, records, pool, engine, redis_client, owns_redis)
