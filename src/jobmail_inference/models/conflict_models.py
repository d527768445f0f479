"""
Conflict and duplicate-detection models.

ConflictRecord is ephemeral unless it requires review; DuplicateReport is
returned to callers of create/edit so the UI can act on it.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from jobmail_inference.models.enums import (
    ConflictDecisionAction,
    ConflictSeverity,
    ConflictType,
    DuplicateDimension,
    DuplicateRecommendation,
    DuplicateRisk,
    IngestAction,
    RecordSource,
    ResolutionStrategy,
)
from jobmail_inference.models.output_models import ParseResult
from jobmail_inference.models.record_models import JobRecord, new_id, utcnow

_DIMENSION_PRIORITY = {
    DuplicateDimension.EXACT: 0,
    DuplicateDimension.FUZZY: 1,
    DuplicateDimension.DOMAIN: 2,
    DuplicateDimension.SEMANTIC: 3,
    DuplicateDimension.TEMPORAL: 4,
}


class ConflictRecord(BaseModel):
    """A disagreement between an existing field value and new data."""

    conflict_id: str = Field(default_factory=new_id)
    job_id: str
    field: str
    conflict_type: ConflictType
    severity: ConflictSeverity
    manual_value: Optional[Any] = Field(default=None, description="Value currently on the record")
    llm_value: Optional[Any] = Field(default=None, description="Incoming value")
    confidence_of_new_data: float = Field(default=0.5, ge=0.0, le=1.0)
    strategy: Optional[ResolutionStrategy] = None
    requires_review: bool = False
    resolved: bool = False
    resolution: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None


class FieldResolution(BaseModel):
    """Outcome of applying a strategy to one conflicting field."""

    field: str
    value: Optional[Any] = None
    source: RecordSource
    strategy: ResolutionStrategy
    took_new: bool = False
    requires_review: bool = False
    confidence: Optional[float] = None


class ConflictDecision(BaseModel):
    """Reviewer's decision for a flagged conflict."""

    model_config = ConfigDict(extra="forbid")

    action: ConflictDecisionAction
    value: Optional[Any] = Field(default=None, description="Required for CUSTOM_VALUE")
    note: Optional[str] = None


class DuplicateMatch(BaseModel):
    job_id: str
    dimension: DuplicateDimension
    score: float = Field(..., ge=0.0, le=1.0)
    reason: str
    company: Optional[str] = None
    position: Optional[str] = None


class DuplicateReport(BaseModel):
    """Matches across all detection dimensions plus the combined risk."""

    matches: list[DuplicateMatch] = Field(default_factory=list)
    risk_level: DuplicateRisk = DuplicateRisk.NONE
    recommendation: DuplicateRecommendation = DuplicateRecommendation.PROCEED

    def by_dimension(self, dimension: DuplicateDimension) -> list[DuplicateMatch]:
        return [m for m in self.matches if m.dimension == dimension]

    @property
    def best_match(self) -> Optional[DuplicateMatch]:
        if not self.matches:
            return None
        return min(self.matches, key=lambda m: (_DIMENSION_PRIORITY[m.dimension], -m.score))

    @property
    def is_blocking(self) -> bool:
        return self.risk_level == DuplicateRisk.CRITICAL


class MergeResult(BaseModel):
    """New record state produced by a conflict-aware merge."""

    record: JobRecord
    resolutions: list[FieldResolution] = Field(default_factory=list)
    flagged: list[ConflictRecord] = Field(default_factory=list)


class CreateRecordResult(BaseModel):
    job_id: str
    record: JobRecord
    conflicts: DuplicateReport


class EditRecordResult(BaseModel):
    job_id: str
    record: JobRecord
    changes: dict[str, dict[str, Any]] = Field(default_factory=dict)
    conflicts: DuplicateReport = Field(default_factory=DuplicateReport)


class IngestResult(BaseModel):
    action: IngestAction
    parse_result: ParseResult
    job_id: Optional[str] = None
    duplicates: Optional[DuplicateReport] = None
    flagged_conflicts: list[ConflictRecord] = Field(default_factory=list)


class ResolveConflictResult(BaseModel):
    conflict: ConflictRecord
    record: JobRecord
