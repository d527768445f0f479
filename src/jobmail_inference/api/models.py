"""
API-specific request and response models for FastAPI endpoints.

Core domain models (EmailMessage, ParseResult, JobRecord, ...) are used
as-is; these wrap them with API metadata.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from jobmail_inference.models.conflict_models import ConflictRecord
from jobmail_inference.models.enums import DuplicateAction
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult

MAX_BATCH_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClassifyResponse(BaseModel):
    """Response for the single-email classification endpoint."""

    status: str = Field(default="success", examples=["success"])
    result: ParseResult = Field(description="Classification with extracted fields")
    duration_ms: int = Field(ge=0, description="Server-side processing time")


class BatchClassifyRequest(BaseModel):
    emails: list[EmailMessage] = Field(
        min_length=1,
        max_length=MAX_BATCH_SIZE,
        description="Emails to classify concurrently",
    )


class BatchClassifyResponse(BaseModel):
    count: int = Field(ge=0)
    results: list[ParseResult]
    duration_ms: int = Field(ge=0)


class MergeRequest(BaseModel):
    """Act on a duplicate pair; the path record is the primary."""

    secondary_id: str = Field(description="Record folded into (or deleted in favor of) the primary")
    action: DuplicateAction = Field(default=DuplicateAction.MERGE_RECORDS)


class ConflictListResponse(BaseModel):
    count: int = Field(ge=0)
    conflicts: list[ConflictRecord]


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(
        description="Overall health status",
        examples=["healthy", "degraded"],
    )
    version: str = Field(examples=["0.1.0"])
    services: dict[str, str] = Field(
        description="Service-specific health status",
        examples=[{"ollama": "ok", "redis": "not_configured"}],
    )
    sessions: dict[str, Any] = Field(default_factory=dict, description="Session pool state")
    cache: dict[str, Any] = Field(default_factory=dict, description="Per-namespace cache stats")
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str = Field(examples=["duplicate_conflict", "validation_failed", "not_found"])
    message: str
    details: Optional[dict] = None
    timestamp: datetime = Field(default_factory=_utcnow)
