"""
Field-level conflict detection, strategy selection and merge.

Pure logic: reads JobRecord values and incoming values, returns new record
state plus the resolutions taken. Persisting the record, the audit log and
flagged conflicts is RecordService's job.
"""

from typing import Any, Optional

import structlog

from jobmail_inference.config import Settings
from jobmail_inference.models.conflict_models import ConflictRecord, FieldResolution, MergeResult
from jobmail_inference.models.enums import (
    ConflictSeverity,
    ConflictType,
    JobStatus,
    RecordSource,
    ResolutionStrategy,
)
from jobmail_inference.models.record_models import FieldMetadata, JobRecord, utcnow
from jobmail_inference.monitoring.metrics import conflict_resolutions_total
from jobmail_inference.reconcile.similarity import advanced_similarity, title_similarity

logger = structlog.get_logger(__name__)

CONFLICT_FIELDS = ("company", "position", "status", "location")

COMPANY_MATCH_THRESHOLD = 0.8
TITLE_MATCH_THRESHOLD = 0.7
LOCATION_MISMATCH_THRESHOLD = 0.5
NOTES_SEPARATOR = "\n---\n"

DEFAULT_STRATEGIES = {
    "company": ResolutionStrategy.PREFER_MANUAL,
    "position": ResolutionStrategy.PREFER_MANUAL,
    "location": ResolutionStrategy.MERGE_BY_COMPLETENESS,
    "status": ResolutionStrategy.HYBRID,
}


def _coerce_status(value: Any) -> Optional[JobStatus]:
    if value is None or isinstance(value, JobStatus):
        return value
    return JobStatus(value)


class ConflictResolver:
    """
    Decide how incoming values reconcile with an existing record.

    Confidence thresholds come from settings (CONFIDENCE_HIGH / CONFIDENCE_MEDIUM).
    """

    def __init__(self, settings: Settings):
        self.high = settings.CONFIDENCE_HIGH
        self.medium = settings.CONFIDENCE_MEDIUM

    # === Detection ===

    def identify_conflicts(
        self,
        existing: JobRecord,
        incoming: dict[str, Any],
        confidence: float,
    ) -> list[ConflictRecord]:
        """
        Compare tracked fields; only real disagreements are returned.

        A missing incoming value never conflicts (there is nothing to apply);
        a missing existing value is a fill, handled by ``merge``.
        """
        conflicts = []
        for field in CONFLICT_FIELDS:
            current = getattr(existing, field)
            new = incoming.get(field)
            if field == "status":
                new = _coerce_status(new)
            if new is None or current is None or current == new:
                continue

            analysis = self._analyze(field, current, new, confidence)
            if analysis is None:
                continue
            conflict_type, severity = analysis
            conflicts.append(
                ConflictRecord(
                    job_id=existing.job_id,
                    field=field,
                    conflict_type=conflict_type,
                    severity=severity,
                    manual_value=current.value if isinstance(current, JobStatus) else current,
                    llm_value=new.value if isinstance(new, JobStatus) else new,
                    confidence_of_new_data=confidence,
                )
            )
        return conflicts

    def _analyze(
        self, field: str, current: Any, new: Any, confidence: float
    ) -> Optional[tuple[ConflictType, ConflictSeverity]]:
        if field == "company":
            if advanced_similarity(current, new) > COMPANY_MATCH_THRESHOLD:
                return None
            severity = ConflictSeverity.HIGH if confidence > self.high else ConflictSeverity.MEDIUM
            return ConflictType.VALUE_MISMATCH, severity

        if field == "position":
            if title_similarity(current, new) > TITLE_MATCH_THRESHOLD:
                return None
            return ConflictType.VALUE_MISMATCH, ConflictSeverity.MEDIUM

        if field == "status":
            return self._analyze_status(current, new)

        if field == "location":
            if advanced_similarity(current, new) >= LOCATION_MISMATCH_THRESHOLD:
                return None
            return ConflictType.LOCATION_MISMATCH, ConflictSeverity.LOW

        return ConflictType.VALUE_MISMATCH, ConflictSeverity.MEDIUM

    @staticmethod
    def _analyze_status(current: JobStatus, new: JobStatus) -> tuple[ConflictType, ConflictSeverity]:
        """
        Applied -> Interview -> {Declined | Offer}.

        Declined is always an acceptable overwrite; any other backwards move
        is a regression that needs review.
        """
        if new is JobStatus.DECLINED:
            conflict_type = (
                ConflictType.TERMINAL_OVERWRITE if JobStatus.is_terminal(current) else ConflictType.STATUS_PROGRESSION
            )
            return conflict_type, ConflictSeverity.LOW
        if JobStatus.rank(new) < JobStatus.rank(current):
            return ConflictType.STATUS_REGRESSION, ConflictSeverity.HIGH
        if JobStatus.rank(new) == JobStatus.rank(current):
            return ConflictType.TERMINAL_OVERWRITE, ConflictSeverity.MEDIUM
        return ConflictType.STATUS_PROGRESSION, ConflictSeverity.LOW

    # === Strategy ===

    def select_strategy(self, conflict: ConflictRecord, record_source: RecordSource) -> ResolutionStrategy:
        if conflict.severity is ConflictSeverity.HIGH:
            return ResolutionStrategy.FLAG_FOR_REVIEW
        if conflict.field == "status" and conflict.llm_value == JobStatus.DECLINED.value:
            return ResolutionStrategy.PREFER_NEW_SOURCE

        default = DEFAULT_STRATEGIES.get(conflict.field, ResolutionStrategy.PREFER_MANUAL)
        if default is ResolutionStrategy.PREFER_MANUAL:
            # nothing manual to protect yet
            if record_source is RecordSource.AUTO_INFERRED:
                return ResolutionStrategy.PREFER_NEW_SOURCE
            return default
        if conflict.confidence_of_new_data > self.high:
            return ResolutionStrategy.HYBRID
        return default

    def apply_strategy(
        self,
        conflict: ConflictRecord,
        strategy: ResolutionStrategy,
        existing: JobRecord,
        incoming_source: RecordSource,
    ) -> FieldResolution:
        current, new = conflict.manual_value, conflict.llm_value
        confidence = conflict.confidence_of_new_data
        take_new = False
        requires_review = False

        if strategy is ResolutionStrategy.PREFER_NEW_SOURCE:
            take_new = True
        elif strategy is ResolutionStrategy.MERGE_BY_COMPLETENESS:
            take_new = len(str(new)) > len(str(current))
        elif strategy is ResolutionStrategy.HYBRID:
            if confidence > self.high:
                take_new = True
            elif confidence > self.medium and conflict.field == "status":
                take_new = JobStatus.is_progression(_coerce_status(current), _coerce_status(new))
        elif strategy is ResolutionStrategy.FLAG_FOR_REVIEW:
            requires_review = True

        existing_meta = existing.current_metadata(conflict.field)
        return FieldResolution(
            field=conflict.field,
            value=new if take_new else current,
            source=incoming_source if take_new else (existing_meta.source if existing_meta else existing.record_source),
            strategy=strategy,
            took_new=take_new,
            requires_review=requires_review,
            confidence=confidence if take_new else (existing_meta.confidence if existing_meta else None),
        )

    # === Merge ===

    def merge(
        self,
        existing: JobRecord,
        incoming: dict[str, Any],
        confidence: float,
        incoming_source: RecordSource = RecordSource.AUTO_INFERRED,
    ) -> MergeResult:
        """
        Reconcile ``incoming`` into a copy of ``existing``.

        Every resolved field gets one appended FieldMetadata entry. History
        is never rewritten. record_source moves to HYBRID when new data was
        taken into a user-authored record.
        """
        record = existing.model_copy(deep=True)
        now = utcnow()
        resolutions: list[FieldResolution] = []
        flagged: list[ConflictRecord] = []

        conflicts = self.identify_conflicts(existing, incoming, confidence)
        for conflict in conflicts:
            strategy = self.select_strategy(conflict, existing.record_source)
            resolution = self.apply_strategy(conflict, strategy, existing, incoming_source)
            conflict.strategy = strategy
            conflict.requires_review = resolution.requires_review
            if resolution.requires_review:
                flagged.append(conflict)
            else:
                conflict.resolved = True
                conflict.resolution = "took_new" if resolution.took_new else "kept_existing"
                conflict.resolved_at = now
            resolutions.append(resolution)
            conflict_resolutions_total.labels(
                strategy=strategy.value,
                requires_review=str(resolution.requires_review).lower(),
            ).inc()

        conflicted = {c.field for c in conflicts}
        for field in CONFLICT_FIELDS + ("notes",):
            new = incoming.get(field)
            if field in conflicted or new is None or getattr(existing, field) is not None:
                continue
            resolutions.append(
                FieldResolution(
                    field=field,
                    value=_coerce_status(new) if field == "status" else new,
                    source=incoming_source,
                    strategy=ResolutionStrategy.MERGE_BY_COMPLETENESS,
                    took_new=True,
                    confidence=confidence,
                )
            )

        for resolution in resolutions:
            previous = getattr(record, resolution.field)
            value = _coerce_status(resolution.value) if resolution.field == "status" else resolution.value
            setattr(record, resolution.field, value)
            record.append_metadata(
                resolution.field,
                FieldMetadata(
                    source=resolution.source,
                    confidence=resolution.confidence,
                    last_modified=now,
                    strategy=resolution.strategy,
                    previous_value=(previous.value if isinstance(previous, JobStatus) else previous)
                    if resolution.took_new else None,
                ),
            )

        if any(r.took_new for r in resolutions):
            record.updated_at = now
            record.llm_confidence = confidence
            if existing.record_source.is_user_authored:
                record.record_source = existing.record_source.after_merge()

        logger.info(
            "Merged incoming data",
            job_id=existing.job_id,
            conflicts=len(conflicts),
            flagged=len(flagged),
            fields_taken=[r.field for r in resolutions if r.took_new],
        )
        return MergeResult(record=record, resolutions=resolutions, flagged=flagged)

    def combine(self, primary: JobRecord, secondary: JobRecord) -> JobRecord:
        """
        Fold ``secondary`` into a copy of ``primary`` for a user-requested merge.

        company/position keep the primary's value unless it is missing,
        status takes the furthest progression, location the more complete
        value, notes are concatenated. The result is always HYBRID.
        """
        record = primary.model_copy(deep=True)
        now = utcnow()

        combined: dict[str, Any] = {
            "company": primary.company or secondary.company,
            "position": primary.position or secondary.position,
            "status": primary.status,
            "location": primary.location,
            "notes": primary.notes,
        }
        if secondary.status is not None and (
            primary.status is None or JobStatus.rank(secondary.status) > JobStatus.rank(primary.status)
        ):
            combined["status"] = secondary.status
        if len(secondary.location or "") > len(primary.location or ""):
            combined["location"] = secondary.location
        if secondary.notes and secondary.notes != primary.notes:
            combined["notes"] = NOTES_SEPARATOR.join(n for n in (primary.notes, secondary.notes) if n)

        for field, value in combined.items():
            previous = getattr(primary, field)
            if value == previous:
                continue
            setattr(record, field, value)
            record.append_metadata(
                field,
                FieldMetadata(
                    source=secondary.record_source,
                    confidence=secondary.llm_confidence,
                    last_modified=now,
                    strategy=ResolutionStrategy.MERGE_BY_COMPLETENESS,
                    previous_value=previous.value if isinstance(previous, JobStatus) else previous,
                ),
            )

        record.sender_domain = primary.sender_domain or secondary.sender_domain
        record.created_at = min(primary.created_at, secondary.created_at)
        record.updated_at = now
        record.record_source = primary.record_source.after_merge()
        return record
