"""
Enumerations for job-mail data models.

All enums are closed taxonomies - no values outside these sets are permitted.
"""

from enum import Enum
from typing import Optional


class JobStatus(str, Enum):
    """
    Application status extracted from an email or entered by the user.

    Progression order: APPLIED -> INTERVIEW -> {DECLINED | OFFER}.
    DECLINED and OFFER are terminal and share the same rank.
    """

    APPLIED = "Applied"
    INTERVIEW = "Interview"
    DECLINED = "Declined"
    OFFER = "Offer"

    @classmethod
    def rank(cls, status: "JobStatus") -> int:
        """Progression rank (0=Applied, 1=Interview, 2=terminal)."""
        return {cls.APPLIED: 0, cls.INTERVIEW: 1, cls.DECLINED: 2, cls.OFFER: 2}[status]

    @classmethod
    def is_terminal(cls, status: "JobStatus") -> bool:
        return status in (cls.DECLINED, cls.OFFER)

    @classmethod
    def is_progression(cls, current: Optional["JobStatus"], new: "JobStatus") -> bool:
        """True if moving from ``current`` to ``new`` follows the progression order."""
        if current is None:
            return True
        return cls.rank(new) > cls.rank(current)


class RiskLevel(str, Enum):
    """Stage 1 risk estimate attached to a classification."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecordSource(str, Enum):
    """
    Provenance of a JobRecord (and of cached values derived from one).

    Upgrades are monotonic along AUTO_INFERRED -> MANUAL_EDITED -> HYBRID.
    MANUAL_CREATED sits beside MANUAL_EDITED and only moves to HYBRID on merge.
    """

    AUTO_INFERRED = "auto_inferred"
    MANUAL_CREATED = "manual_created"
    MANUAL_EDITED = "manual_edited"
    HYBRID = "hybrid"

    @classmethod
    def get_ordinal(cls, source: "RecordSource") -> int:
        return {
            cls.AUTO_INFERRED: 0,
            cls.MANUAL_CREATED: 1,
            cls.MANUAL_EDITED: 1,
            cls.HYBRID: 2,
        }[source]

    def after_user_edit(self) -> "RecordSource":
        """Source a record takes after the user edits it."""
        if self is RecordSource.AUTO_INFERRED:
            return RecordSource.MANUAL_EDITED
        if self is RecordSource.MANUAL_EDITED:
            return RecordSource.HYBRID
        return self

    def after_merge(self) -> "RecordSource":
        """Source a record takes after automatic data is merged into it."""
        return RecordSource.HYBRID

    @property
    def is_user_authored(self) -> bool:
        return self is not RecordSource.AUTO_INFERRED


class PipelineStage(str, Enum):
    """Inference stage a session is bound to."""

    STAGE1 = "stage1"
    STAGE2 = "stage2"


class SessionState(str, Enum):
    """Lifecycle of an inference session."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    UNHEALTHY = "unhealthy"
    DISPOSED = "disposed"


class NormalizationMethod(str, Enum):
    """How the normalizer recovered a result from raw model text."""

    STRICT = "strict"
    REPAIRED = "repaired"
    REGEX = "regex"
    CONSERVATIVE = "conservative"


class ConflictType(str, Enum):
    VALUE_MISMATCH = "value_mismatch"
    STATUS_REGRESSION = "status_regression"
    STATUS_PROGRESSION = "status_progression"
    TERMINAL_OVERWRITE = "terminal_overwrite"
    LOCATION_MISMATCH = "location_mismatch"


class ConflictSeverity(str, Enum):
    """Qualitative ranking of how strongly two values disagree."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResolutionStrategy(str, Enum):
    PREFER_MANUAL = "prefer_manual"
    PREFER_NEW_SOURCE = "prefer_new_source"
    MERGE_BY_COMPLETENESS = "merge_by_completeness"
    HYBRID = "hybrid"
    FLAG_FOR_REVIEW = "flag_for_review"


class DuplicateDimension(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    DOMAIN = "domain"
    SEMANTIC = "semantic"
    TEMPORAL = "temporal"


class DuplicateRisk(str, Enum):
    """Overall duplicate risk, evaluated in priority order CRITICAL..NONE."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class DuplicateRecommendation(str, Enum):
    BLOCK = "block"
    WARN = "warn"
    SUGGEST = "suggest"
    PROCEED = "proceed"


class ConflictDecisionAction(str, Enum):
    """What a reviewer decided for a flagged field conflict."""

    ACCEPT_NEW = "accept_new"
    KEEP_EXISTING = "keep_existing"
    CUSTOM_VALUE = "custom_value"


class DuplicateAction(str, Enum):
    """What the user decided for a pair of duplicate records."""

    MERGE_RECORDS = "merge_records"
    KEEP_BOTH = "keep_both"
    DELETE_DUPLICATE = "delete_duplicate"


class IngestAction(str, Enum):
    CREATED = "created"
    MERGED = "merged"
    SKIPPED = "skipped"
