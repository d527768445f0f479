"""
Pydantic data models for job-mail inference.

Includes:
- Input models (EmailMessage)
- Output models (ClassificationResult, ParseResult)
- Record models (JobRecord, FieldMetadata, audit / edit history)
- Conflict models (ConflictRecord, DuplicateReport, results)
- Enums (JobStatus, RecordSource, SessionState, ...)
- LLM models (LLMGenerationRequest, LLMGenerationResponse)
"""

from jobmail_inference.models.enums import (
    ConflictDecisionAction,
    ConflictSeverity,
    ConflictType,
    DuplicateAction,
    DuplicateDimension,
    DuplicateRecommendation,
    DuplicateRisk,
    IngestAction,
    JobStatus,
    NormalizationMethod,
    PipelineStage,
    RecordSource,
    ResolutionStrategy,
    RiskLevel,
    SessionState,
)
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ClassificationResult, ParseResult
from jobmail_inference.models.record_models import (
    TRACKED_FIELDS,
    AuditEntry,
    EditHistoryEntry,
    FieldMetadata,
    JobRecord,
    ManualRecordInput,
    RecordUpdate,
)
from jobmail_inference.models.conflict_models import (
    ConflictDecision,
    ConflictRecord,
    CreateRecordResult,
    DuplicateMatch,
    DuplicateReport,
    EditRecordResult,
    FieldResolution,
    IngestResult,
    MergeResult,
    ResolveConflictResult,
)
from jobmail_inference.models.llm_models import LLMGenerationRequest, LLMGenerationResponse

__all__ = [
    "ConflictDecisionAction",
    "ConflictSeverity",
    "ConflictType",
    "DuplicateAction",
    "DuplicateDimension",
    "DuplicateRecommendation",
    "DuplicateRisk",
    "IngestAction",
    "JobStatus",
    "NormalizationMethod",
    "PipelineStage",
    "RecordSource",
    "ResolutionStrategy",
    "RiskLevel",
    "SessionState",
    "EmailMessage",
    "ClassificationResult",
    "ParseResult",
    "TRACKED_FIELDS",
    "AuditEntry",
    "EditHistoryEntry",
    "FieldMetadata",
    "JobRecord",
    "ManualRecordInput",
    "RecordUpdate",
    "ConflictDecision",
    "ConflictRecord",
    "CreateRecordResult",
    "DuplicateMatch",
    "DuplicateReport",
    "EditRecordResult",
    "FieldResolution",
    "IngestResult",
    "MergeResult",
    "ResolveConflictResult",
    "LLMGenerationRequest",
    "LLMGenerationResponse",
]
