"""
FastAPI application entry point for the job-mail inference service.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from jobmail_inference.api.dependencies import get_service
from jobmail_inference.api.error_handlers import EXCEPTION_HANDLERS
from jobmail_inference.api.middleware import RequestTracingMiddleware
from jobmail_inference.api.routes_classify import router as classify_router
from jobmail_inference.api.routes_records import router as records_router
from jobmail_inference.config import settings
from jobmail_inference.logging_config import configure_logging
from jobmail_inference.persistence.redis_client import RedisClient

# Configure structured logging before any other imports
configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)
logger = structlog.get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Job-application email classification with bounded-latency local inference "
    "and reconciliation against user-authored records",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Request tracing middleware (must be first for request_id in all logs)
app.add_middleware(RequestTracingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

app.include_router(classify_router, tags=["classification"])
app.include_router(records_router, tags=["records"])


@app.on_event("startup")
async def startup():
    """Build the service on this loop and start the cache sweeper."""
    logger.info(
        "Application startup",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        ollama_base_url=settings.OLLAMA_BASE_URL,
        stage1_model=settings.STAGE1_MODEL,
        stage2_model=settings.STAGE2_MODEL,
        record_store=settings.RECORD_STORE_BACKEND,
    )

    service = get_service()
    service.start()

    if await service.engine.health_check():
        logger.info("Ollama connection successful")
    else:
        logger.warning("Ollama unreachable; classification will use the fallback classifier")

    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown():
    """Stop the sweeper, dispose sessions and models, close the engine and Redis."""
    logger.info("Application shutdown")
    if get_service.cache_info().currsize:
        await get_service().close()
        get_service.cache_clear()
    await RedisClient.close_async_pool()
    logger.info("Application shutdown complete")


if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    """Root endpoint with API documentation links."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics" if settings.PROMETHEUS_ENABLED else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jobmail_inference.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Only for development
    )
