"""
Persistent record models.

JobRecord is the tracked application. Per-field provenance is kept as an
append-only list of FieldMetadata entries; the last entry is current.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from jobmail_inference.models.enums import JobStatus, RecordSource, ResolutionStrategy
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult

TRACKED_FIELDS = ("company", "position", "status", "location", "notes")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class FieldMetadata(BaseModel):
    """Provenance of one field value."""

    model_config = ConfigDict(extra="forbid")

    source: RecordSource = Field(..., description="Where the value came from")
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    last_modified: datetime = Field(default_factory=utcnow)
    user_override: bool = Field(default=False, description="Set when a user typed the value")
    strategy: Optional[ResolutionStrategy] = Field(
        default=None, description="Resolution strategy that produced the value, if any"
    )
    previous_value: Optional[Any] = Field(default=None, description="Value before this change")


class JobRecord(BaseModel):
    """A tracked job application."""

    job_id: str = Field(default_factory=new_id)
    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[JobStatus] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    sender_domain: Optional[str] = Field(default=None, description="Sender domain of the originating email")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    record_source: RecordSource = RecordSource.AUTO_INFERRED
    llm_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    field_metadata: dict[str, list[FieldMetadata]] = Field(default_factory=dict)
    original_classification: Optional[ParseResult] = None
    source_email: Optional[EmailMessage] = None

    def field_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in TRACKED_FIELDS}

    def current_metadata(self, field: str) -> Optional[FieldMetadata]:
        history = self.field_metadata.get(field)
        return history[-1] if history else None

    def append_metadata(self, field: str, metadata: FieldMetadata) -> None:
        self.field_metadata.setdefault(field, []).append(metadata)


class ManualRecordInput(BaseModel):
    """
    User-supplied data for a new record.

    Loosely typed on purpose: shape checks happen in RecordService so that
    failures surface as RecordValidationError with every problem listed.
    """

    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = JobStatus.APPLIED.value
    location: Optional[str] = None
    notes: Optional[str] = None
    sender_domain: Optional[str] = None


class RecordUpdate(BaseModel):
    """Partial update; only fields explicitly set are applied."""

    model_config = ConfigDict(extra="forbid")

    company: Optional[str] = None
    position: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class AuditEntry(BaseModel):
    """Append-only audit log line keyed by job id."""

    job_id: str
    action: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class EditHistoryEntry(BaseModel):
    """One field change made through edit_record."""

    job_id: str
    field: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    source: RecordSource
    edited_at: datetime = Field(default_factory=utcnow)
