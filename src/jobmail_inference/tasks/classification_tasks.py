"""
Celery tasks for batch classification.

Each task invocation runs one event loop (``asyncio.run``) and builds a
fresh JobMailService inside it: the session pool, locks, gate and the
engine's HTTP client all belong to that loop and are closed before it ends.

Tasks accept and return JSON-serializable dicts.
"""

import asyncio
import time
from typing import Any, Callable

import structlog
from celery import Task
from redis.exceptions import RedisError

from jobmail_inference.config import Settings, settings
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.service import JobMailService, build_service
from jobmail_inference.tasks.celery_app import celery_app

logger = structlog.get_logger(__name__)

ServiceFactory = Callable[[Settings], JobMailService]


async def run_batch(
    emails: list[EmailMessage],
    ingest: bool = False,
    service_factory: ServiceFactory = build_service,
    app_settings: Settings = settings,
) -> list[dict[str, Any]]:
    """
    Classify (or ingest) a batch on the current loop with a private service.

    Ingest runs sequentially so every email's duplicate check sees the
    records created by the emails before it.
    """
    service = service_factory(app_settings)
    try:
        if ingest:
            results = [await service.ingest(email) for email in emails]
        else:
            results = await service.classify_batch(emails)
        return [result.model_dump(mode="json") for result in results]
    finally:
        await service.close()


class ClassificationTask(Task):
    """
    Base task holding the service factory.

    Overridable per worker (and in tests) without touching the task body.
    """

    service_factory: ServiceFactory = staticmethod(build_service)


@celery_app.task(
    bind=True,
    base=ClassificationTask,
    name="classify_batch",
    max_retries=3,
)
def classify_batch_task(self: ClassificationTask, email_dicts: list[dict], ingest: bool = False) -> dict:
    """
    Classify a batch of emails.

    Args:
        email_dicts: EmailMessage dicts
        ingest: Also fold job-related results into the record store

    Returns:
        Dict with count, results (ParseResult or IngestResult dicts) and duration_ms

    Raises:
        pydantic.ValidationError: A malformed email dict (not retried)
    """
    start_time = time.time()
    emails = [EmailMessage.model_validate(d) for d in email_dicts]

    logger.info("Batch task started", task_id=self.request.id, batch_size=len(emails), ingest=ingest)

    try:
        results = asyncio.run(run_batch(emails, ingest=ingest, service_factory=self.service_factory))
    except RedisError as exc:
        # store outage; classification itself never raises
        logger.error("Batch task failed on record store", task_id=self.request.id, error=str(exc))
        raise self.retry(exc=exc, countdown=60)

    duration_ms = int((time.time() - start_time) * 1000)
    logger.info("Batch task completed", task_id=self.request.id, count=len(results), duration_ms=duration_ms)
    return {"count": len(results), "results": results, "duration_ms": duration_ms}
