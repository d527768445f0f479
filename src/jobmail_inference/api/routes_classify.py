"""
Classification and health routes.

/classify never fails on inference problems: the response always carries a
ParseResult, possibly from the rule-based fallback or the conservative tier.
"""

import time

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from redis.exceptions import RedisError

from jobmail_inference.api.dependencies import get_service, get_settings
from jobmail_inference.api.models import (
    BatchClassifyRequest,
    BatchClassifyResponse,
    ClassifyResponse,
    HealthResponse,
)
from jobmail_inference.config import Settings
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.service import JobMailService

logger = structlog.get_logger(__name__)

classify_requests_total = Counter(
    "classify_requests_total",
    "Total classification requests",
    ["endpoint", "decision_path"],
)

classify_duration_seconds = Histogram(
    "classify_duration_seconds",
    "Classification request duration in seconds",
    ["endpoint"],
)

router = APIRouter()


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    status_code=status.HTTP_200_OK,
    summary="Classify a single email",
    description="""
    Decide whether an email concerns a job application and extract
    company, position and status.

    Bounded latency: each inference stage has a hard deadline, after which
    the rule-based fallback answers instead.
    """,
)
async def classify_email(
    email: EmailMessage,
    service: JobMailService = Depends(get_service),
) -> ClassifyResponse:
    start_time = time.perf_counter()
    result = await service.classify(email)
    elapsed = time.perf_counter() - start_time

    classify_requests_total.labels(endpoint="classify", decision_path=result.decision_path).inc()
    classify_duration_seconds.labels(endpoint="classify").observe(elapsed)
    logger.info(
        "Email classified",
        is_job_related=result.is_job_related,
        decision_path=result.decision_path,
        duration_ms=int(elapsed * 1000),
    )
    return ClassifyResponse(result=result, duration_ms=int(elapsed * 1000))


@router.post(
    "/classify/batch",
    response_model=BatchClassifyResponse,
    summary="Classify a batch of emails",
    description="""
    Classify up to 100 emails concurrently in this process. Emails beyond
    the inference concurrency limit take the fallback path rather than queue.

    Large offline batches belong on the Celery ``classify_batch`` task.
    """,
)
async def classify_batch(
    batch: BatchClassifyRequest,
    service: JobMailService = Depends(get_service),
) -> BatchClassifyResponse:
    start_time = time.perf_counter()
    results = await service.classify_batch(batch.emails)
    elapsed = time.perf_counter() - start_time

    for result in results:
        classify_requests_total.labels(endpoint="classify_batch", decision_path=result.decision_path).inc()
    classify_duration_seconds.labels(endpoint="classify_batch").observe(elapsed)
    logger.info("Batch classified", batch_size=len(results), duration_ms=int(elapsed * 1000))
    return BatchClassifyResponse(count=len(results), results=results, duration_ms=int(elapsed * 1000))


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="""
    Ollama reachability, Redis (when configured), session pool and cache state.

    Ollama being down is "degraded", not "unhealthy": classification still
    answers from the fallback classifier.
    """,
)
async def health_check(
    service: JobMailService = Depends(get_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    services = {}

    services["ollama"] = "ok" if await service.engine.health_check() else "unreachable"

    if service.redis is None:
        services["redis"] = "not_configured"
    else:
        try:
            await service.redis.ping()
            services["redis"] = "ok"
        except RedisError as e:
            services["redis"] = f"unreachable ({type(e).__name__})"

    healthy = all(v in ("ok", "not_configured") for v in services.values())
    stats = service.stats()
    response = HealthResponse(
        status="healthy" if healthy else "degraded",
        version=settings.APP_VERSION,
        services=services,
        sessions=stats["sessions"],
        cache=stats["cache"],
    )

    logger.info("Health check", status=response.status, services=services)
    return JSONResponse(status_code=status.HTTP_200_OK, content=response.model_dump(mode="json"))
