"""
FastAPI API routes and endpoints.

- routes_classify.py: POST /classify, POST /classify/batch, GET /health
- routes_records.py: /records and /conflicts endpoints
- dependencies.py: Singleton engine, Redis pool and JobMailService
- models.py: API-specific request/response models
- error_handlers.py: Exception handlers for structured error responses
"""

from jobmail_inference.api import dependencies, error_handlers, models
from jobmail_inference.api.routes_classify import router as classify_router
from jobmail_inference.api.routes_records import router as records_router

__all__ = [
    "classify_router",
    "records_router",
    "dependencies",
    "error_handlers",
    "models",
]
