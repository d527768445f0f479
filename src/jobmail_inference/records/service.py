"""
Record service: every mutation of JobRecords goes through here.

Responsibilities:
- Shape checks on caller data (RecordValidationError)
- Duplicate checks before create/edit; CRITICAL risk blocks (ConflictError)
- Conflict-aware merge of automatic data into existing records
- Append-only audit log and edit history
- Cache invalidation after every write

Locking:
- creation (manual or automatic) is serialized per normalized company+title
- mutations of an existing record are serialized per job_id
- a rename also holds the creation key of the new name, taken before the job_id
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Union

import structlog

from jobmail_inference.cache.hasher import record_key
from jobmail_inference.cache.tiered import CacheNamespace, TieredCache
from jobmail_inference.classifier.service import ClassificationService
from jobmail_inference.config import Settings
from jobmail_inference.inference.concurrency import KeyedLock
from jobmail_inference.models.conflict_models import (
    ConflictDecision,
    ConflictRecord,
    CreateRecordResult,
    DuplicateReport,
    EditRecordResult,
    IngestResult,
    MergeResult,
    ResolveConflictResult,
)
from jobmail_inference.models.enums import (
    ConflictDecisionAction,
    DuplicateAction,
    DuplicateRisk,
    IngestAction,
    JobStatus,
    RecordSource,
    ResolutionStrategy,
)
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult
from jobmail_inference.models.record_models import (
    TRACKED_FIELDS,
    AuditEntry,
    EditHistoryEntry,
    FieldMetadata,
    JobRecord,
    ManualRecordInput,
    RecordUpdate,
    utcnow,
)
from jobmail_inference.persistence.base import RecordStore
from jobmail_inference.reconcile.detector import DuplicateCandidate, DuplicateDetector
from jobmail_inference.reconcile.resolver import ConflictResolver
from jobmail_inference.reconcile.similarity import normalize_text
from jobmail_inference.records.exceptions import (
    ConflictError,
    ConflictNotFoundError,
    RecordNotFoundError,
    RecordValidationError,
)

logger = structlog.get_logger(__name__)

MIN_NAME_LENGTH = 2

# Duplicate risks that make ingest merge into the matched record instead of creating one
MERGE_RISKS = (DuplicateRisk.CRITICAL, DuplicateRisk.HIGH)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, JobStatus) else value


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = " ".join(str(value).split())
    return value or None


def _check_fields(values: dict[str, Any], errors: list[str]) -> dict[str, Any]:
    """Normalize whitespace and validate whichever tracked fields are present."""
    cleaned: dict[str, Any] = {}
    for field, raw in values.items():
        value = _clean(raw)
        if field in ("company", "position"):
            if value is None or len(value) < MIN_NAME_LENGTH:
                errors.append(f"{field} is required and must be at least {MIN_NAME_LENGTH} characters")
                continue
        elif field == "status":
            if value is None:
                errors.append("status cannot be cleared")
                continue
            try:
                value = JobStatus(value)
            except ValueError:
                allowed = ", ".join(s.value for s in JobStatus)
                errors.append(f"Invalid status {raw!r}. Must be one of: {allowed}")
                continue
        cleaned[field] = value
    return cleaned


def validate_manual_input(data: ManualRecordInput) -> dict[str, Any]:
    """
    Shape checks for a new manual record.

    Raises:
        RecordValidationError: Listing every problem found
    """
    errors: list[str] = []
    values = data.model_dump(exclude={"sender_domain"})
    values["status"] = values.get("status") or JobStatus.APPLIED.value
    cleaned = _check_fields(values, errors)
    if errors:
        raise RecordValidationError("Invalid manual record", errors)
    cleaned["sender_domain"] = (_clean(data.sender_domain) or "").lower() or None
    return cleaned


def validate_update(updates: RecordUpdate) -> dict[str, Any]:
    """Shape checks for a partial update; only explicitly set fields are checked."""
    errors: list[str] = []
    cleaned = _check_fields(updates.changes(), errors)
    if errors:
        raise RecordValidationError("Invalid record update", errors)
    return cleaned


class RecordService:
    """
    Create, edit, ingest and reconcile JobRecords.

    ``classification`` is only needed for ``ingest``; the detector may
    separately hold the same service as its extractor.
    """

    def __init__(
        self,
        store: RecordStore,
        detector: DuplicateDetector,
        resolver: ConflictResolver,
        cache: TieredCache,
        settings: Settings,
        classification: Optional[ClassificationService] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.store = store
        self.detector = detector
        self.resolver = resolver
        self.cache = cache
        self.settings = settings
        self.classification = classification
        self.locks = locks or KeyedLock()

    # === Reads ===

    async def get_record(self, job_id: str) -> JobRecord:
        cached = self.cache.get(CacheNamespace.MANUAL_RECORD, job_id)
        if cached is not None:
            return cached
        record = await self._require(job_id)
        # source-aware TTL: manually created records are never cached
        self.cache.set(
            CacheNamespace.MANUAL_RECORD,
            job_id,
            record,
            source=record.record_source,
            tags=(record.company, record.position),
        )
        return record

    async def get_audit(self, job_id: str) -> list[AuditEntry]:
        return await self.store.get_audit(job_id)

    async def get_edit_history(self, job_id: str) -> list[EditHistoryEntry]:
        return await self.store.get_edit_history(job_id)

    async def list_conflicts(self, job_id: Optional[str] = None) -> list[ConflictRecord]:
        return await self.store.list_open_conflicts(job_id)

    async def check_duplicates(
        self, candidate: DuplicateCandidate, exclude_job_id: Optional[str] = None
    ) -> DuplicateReport:
        """DuplicateDetector.detect behind the duplicate_check cache namespace."""
        key = record_key(
            normalize_text(candidate.company),
            normalize_text(candidate.position),
            candidate.status.value if candidate.status else "",
            candidate.sender_domain or "",
            exclude_job_id or "",
        )
        cached = self.cache.get(CacheNamespace.DUPLICATE_CHECK, key)
        if cached is not None:
            return cached
        report = await self.detector.detect(candidate, exclude_job_id=exclude_job_id)
        self.cache.set(
            CacheNamespace.DUPLICATE_CHECK,
            key,
            report,
            tags=(candidate.company, candidate.position),
        )
        return report

    # === Manual records ===

    async def create_manual_record(self, data: Union[ManualRecordInput, dict[str, Any]]) -> CreateRecordResult:
        """
        Create a user-authored record.

        Raises:
            RecordValidationError: Missing or malformed fields
            ConflictError: An existing record is a certain duplicate
        """
        if isinstance(data, dict):
            data = ManualRecordInput(**data)
        values = validate_manual_input(data)

        async with self.locks.hold(self._creation_key(values["company"], values["position"])):
            report = await self.check_duplicates(
                DuplicateCandidate(
                    company=values["company"],
                    position=values["position"],
                    status=values["status"],
                    sender_domain=values["sender_domain"],
                )
            )
            if report.is_blocking:
                logger.warning(
                    "Manual record blocked as duplicate",
                    company=values["company"],
                    position=values["position"],
                    duplicate_job_id=report.best_match.job_id if report.best_match else None,
                )
                raise ConflictError("Potential duplicate record detected", report)

            now = utcnow()
            record = JobRecord(
                **values,
                record_source=RecordSource.MANUAL_CREATED,
                created_at=now,
                updated_at=now,
            )
            for field in TRACKED_FIELDS:
                if getattr(record, field) is not None:
                    record.append_metadata(
                        field,
                        FieldMetadata(
                            source=RecordSource.MANUAL_CREATED,
                            confidence=1.0,
                            last_modified=now,
                            user_override=True,
                        ),
                    )
            record = await self.store.create(record)
            await self._audit(
                record.job_id,
                "record_created",
                record_source=record.record_source.value,
                duplicate_risk=report.risk_level.value,
            )
            self._invalidate(record.company, record.position)

        logger.info("Manual record created", job_id=record.job_id, duplicate_risk=report.risk_level.value)
        return CreateRecordResult(job_id=record.job_id, record=record, conflicts=report)

    async def edit_record(self, job_id: str, updates: Union[RecordUpdate, dict[str, Any]]) -> EditRecordResult:
        """
        Apply a user edit.

        Upgrades record_source (AUTO_INFERRED -> MANUAL_EDITED -> HYBRID),
        writes one edit-history entry per changed field and re-runs the
        duplicate check when company or position changed.

        Raises:
            RecordNotFoundError: Unknown job_id
            RecordValidationError: Malformed update
            ConflictError: The edit would make this record a certain duplicate
        """
        if isinstance(updates, dict):
            updates = RecordUpdate(**updates)
        values = validate_update(updates)

        while True:
            creation_key = self._rename_key(await self._require(job_id), values)
            async with self._hold_for_edit(job_id, creation_key):
                record = await self._require(job_id)
                if self._rename_key(record, values) == creation_key:
                    return await self._apply_edit(record, values)
            # renamed by a concurrent edit; retry under the new name's lock

    async def _apply_edit(self, record: JobRecord, values: dict[str, Any]) -> EditRecordResult:
        job_id = record.job_id
        diffs = {
            field: {"old": _plain(getattr(record, field)), "new": _plain(value)}
            for field, value in values.items()
            if getattr(record, field) != value
        }
        if not diffs:
            return EditRecordResult(job_id=job_id, record=record)

        report = DuplicateReport()
        if "company" in diffs or "position" in diffs:
            report = await self.check_duplicates(
                DuplicateCandidate(
                    company=values.get("company", record.company),
                    position=values.get("position", record.position),
                    status=values.get("status", record.status),
                    sender_domain=record.sender_domain,
                ),
                exclude_job_id=job_id,
            )
            if report.is_blocking:
                raise ConflictError("Edit would duplicate an existing record", report)

        new_source = record.record_source.after_user_edit()
        now = utcnow()
        updated = record.model_copy(deep=True)
        for field in diffs:
            setattr(updated, field, values[field])
            updated.append_metadata(
                field,
                FieldMetadata(
                    source=new_source,
                    confidence=1.0,
                    last_modified=now,
                    user_override=True,
                    previous_value=diffs[field]["old"],
                ),
            )
        updated.record_source = new_source
        updated.updated_at = now
        updated = await self.store.update(updated)

        for field, diff in diffs.items():
            await self.store.append_edit_history(
                EditHistoryEntry(
                    job_id=job_id,
                    field=field,
                    old_value=diff["old"],
                    new_value=diff["new"],
                    source=new_source,
                    edited_at=now,
                )
            )
        await self._audit(
            job_id,
            "record_edited",
            fields=sorted(diffs),
            previous_source=record.record_source.value,
            record_source=new_source.value,
        )
        self._invalidate(record.company, record.position, updated.company, updated.position)

        logger.info("Record edited", job_id=job_id, fields=sorted(diffs), record_source=new_source.value)
        return EditRecordResult(job_id=job_id, record=updated, changes=diffs, conflicts=report)

    def _rename_key(self, record: JobRecord, values: dict[str, Any]) -> Optional[str]:
        """Creation key of the name an edit gives the record, or None when it keeps its name."""
        if "company" not in values and "position" not in values:
            return None
        return self._creation_key(values.get("company", record.company), values.get("position", record.position))

    @asynccontextmanager
    async def _hold_for_edit(self, job_id: str, creation_key: Optional[str]) -> AsyncIterator[None]:
        # creation key before job id, the same order ingest takes them in
        if creation_key is None:
            async with self.locks.hold(job_id):
                yield
            return
        async with self.locks.hold(creation_key):
            async with self.locks.hold(job_id):
                yield

    # === Automatic path ===

    async def ingest(self, email: EmailMessage) -> IngestResult:
        """
        Classify an email and fold the result into the store.

        Not job-related (or no company extracted) -> skipped.
        A CRITICAL/HIGH duplicate -> conflict-aware merge into that record.
        Otherwise -> a new AUTO_INFERRED record.
        """
        if self.classification is None:
            raise RuntimeError("RecordService.ingest requires a ClassificationService")

        result = await self.classification.classify(email)
        if not result.is_job_related or not result.company:
            logger.info("Ingest skipped", decision_path=result.decision_path, is_job_related=result.is_job_related)
            return IngestResult(action=IngestAction.SKIPPED, parse_result=result)

        candidate = DuplicateCandidate(
            company=result.company,
            position=result.position,
            status=result.status,
            sender_domain=email.sender_domain or None,
            source_email=email,
            extraction=result,
        )
        async with self.locks.hold(self._creation_key(result.company, result.position)):
            report = await self.check_duplicates(candidate)
            target = report.best_match if report.risk_level in MERGE_RISKS else None
            if target is not None:
                merge = await self._merge_into(target.job_id, result.model_dump(), result.confidence)
                return IngestResult(
                    action=IngestAction.MERGED,
                    parse_result=result,
                    job_id=target.job_id,
                    duplicates=report,
                    flagged_conflicts=merge.flagged,
                )

            record = await self._create_inferred(email, result)

        return IngestResult(action=IngestAction.CREATED, parse_result=result, job_id=record.job_id, duplicates=report)

    async def _create_inferred(self, email: EmailMessage, result: ParseResult) -> JobRecord:
        now = utcnow()
        record = JobRecord(
            company=result.company,
            position=result.position,
            status=result.status,
            sender_domain=email.sender_domain or None,
            record_source=RecordSource.AUTO_INFERRED,
            llm_confidence=result.confidence,
            original_classification=result,
            source_email=email,
            created_at=now,
            updated_at=now,
        )
        for field in TRACKED_FIELDS:
            if getattr(record, field) is not None:
                record.append_metadata(
                    field,
                    FieldMetadata(source=RecordSource.AUTO_INFERRED, confidence=result.confidence, last_modified=now),
                )
        record = await self.store.create(record)
        await self._audit(
            record.job_id,
            "record_created",
            record_source=RecordSource.AUTO_INFERRED.value,
            decision_path=result.decision_path,
            confidence=result.confidence,
        )
        self._invalidate(record.company, record.position)
        logger.info("Inferred record created", job_id=record.job_id, decision_path=result.decision_path)
        return record

    async def _merge_into(self, job_id: str, incoming: dict[str, Any], confidence: float) -> MergeResult:
        async with self.locks.hold(job_id):
            existing = await self._require(job_id)
            merge = self.resolver.merge(existing, incoming, confidence, RecordSource.AUTO_INFERRED)
            if not merge.resolutions:
                return merge

            await self.store.update(merge.record)
            for conflict in merge.flagged:
                await self.store.save_conflict(conflict)
            for resolution in merge.resolutions:
                flagged_ids = [c.conflict_id for c in merge.flagged if c.field == resolution.field]
                await self._audit(
                    job_id,
                    "conflict_flagged" if resolution.requires_review else "conflict_auto_resolved",
                    field=resolution.field,
                    strategy=resolution.strategy.value,
                    took_new=resolution.took_new,
                    value=_plain(resolution.value),
                    confidence=confidence,
                    conflict_id=flagged_ids[0] if flagged_ids else None,
                )
            self._invalidate(existing.company, existing.position, merge.record.company, merge.record.position)

        logger.info(
            "Automatic data merged",
            job_id=job_id,
            resolutions=len(merge.resolutions),
            flagged=len(merge.flagged),
        )
        return merge

    # === Review decisions ===

    async def resolve_conflict(
        self, conflict_id: str, decision: Union[ConflictDecision, dict[str, Any]]
    ) -> ResolveConflictResult:
        """
        Apply a reviewer's decision to a flagged conflict.

        Raises:
            ConflictNotFoundError: Unknown conflict_id
            RecordValidationError: Already resolved, or bad custom value
            RecordNotFoundError: The conflict's record no longer exists
        """
        if isinstance(decision, dict):
            decision = ConflictDecision(**decision)

        conflict = await self._require_open_conflict(conflict_id)

        if decision.action is ConflictDecisionAction.CUSTOM_VALUE:
            if decision.value is None:
                raise RecordValidationError("Custom value required", ["value is required for custom_value"])
            errors: list[str] = []
            value = _check_fields({conflict.field: decision.value}, errors).get(conflict.field)
            if errors:
                raise RecordValidationError("Invalid custom value", errors)
        elif decision.action is ConflictDecisionAction.ACCEPT_NEW:
            value = JobStatus(conflict.llm_value) if conflict.field == "status" else conflict.llm_value
        else:
            value = None

        async with self.locks.hold(conflict.job_id):
            # a concurrent decision may have landed while we waited
            conflict = await self._require_open_conflict(conflict_id)
            record = await self._require(conflict.job_id)
            now = utcnow()

            if decision.action is not ConflictDecisionAction.KEEP_EXISTING:
                previous = getattr(record, conflict.field)
                if decision.action is ConflictDecisionAction.ACCEPT_NEW:
                    source = RecordSource.AUTO_INFERRED
                    confidence = conflict.confidence_of_new_data
                    record_source = record.record_source
                    if record_source.is_user_authored:
                        record_source = record_source.after_merge()
                else:
                    source = record.record_source.after_user_edit()
                    confidence = 1.0
                    record_source = source
                setattr(record, conflict.field, value)
                record.append_metadata(
                    conflict.field,
                    FieldMetadata(
                        source=source,
                        confidence=confidence,
                        last_modified=now,
                        user_override=decision.action is ConflictDecisionAction.CUSTOM_VALUE,
                        strategy=ResolutionStrategy.FLAG_FOR_REVIEW,
                        previous_value=_plain(previous),
                    ),
                )
                record.record_source = record_source
                record.updated_at = now

            conflict.resolved = True
            conflict.requires_review = False
            conflict.resolution = decision.action.value
            conflict.resolved_at = now
            audit = AuditEntry(
                job_id=conflict.job_id,
                action="conflict_resolved",
                details={
                    "conflict_id": conflict_id,
                    "field": conflict.field,
                    "decision": decision.action.value,
                    "value": _plain(getattr(record, conflict.field)),
                    "note": decision.note,
                },
            )

            if decision.action is not ConflictDecisionAction.KEEP_EXISTING:
                record = await self.store.update(record)
            conflict = await self.store.update_conflict(conflict)
            await self.store.append_audit(audit)
            self._invalidate(record.company, record.position)

        logger.info("Conflict resolved", conflict_id=conflict_id, action=decision.action.value)
        return ResolveConflictResult(conflict=conflict, record=record)

    async def resolve_duplicate(
        self, action: Union[DuplicateAction, str], primary_id: str, secondary_id: str
    ) -> JobRecord:
        """
        Act on a reported duplicate pair.

        MERGE_RECORDS folds secondary into primary; DELETE_DUPLICATE removes
        secondary; KEEP_BOTH only records the decision. Returns the primary.
        """
        action = DuplicateAction(action)
        if action is DuplicateAction.MERGE_RECORDS:
            return await self.merge_records(primary_id, secondary_id)

        if primary_id == secondary_id:
            raise RecordValidationError("Duplicate pair must name two records", [primary_id])

        first, second = sorted((primary_id, secondary_id))
        async with self.locks.hold(first):
            async with self.locks.hold(second):
                primary = await self._require(primary_id)
                secondary = await self._require(secondary_id)
                if action is DuplicateAction.DELETE_DUPLICATE:
                    await self.store.delete(secondary_id)
                    await self._close_conflicts(secondary_id, "record_deleted")
                    await self._audit(primary_id, "duplicate_deleted", deleted_job_id=secondary_id)
                    self._invalidate(secondary.company, secondary.position)
                else:
                    for job_id, other in ((primary_id, secondary_id), (secondary_id, primary_id)):
                        await self._audit(job_id, "duplicate_kept", other_job_id=other)

        logger.info("Duplicate resolved", action=action.value, primary=primary_id, secondary=secondary_id)
        return primary

    async def merge_records(self, primary_id: str, secondary_id: str) -> JobRecord:
        """
        Merge two records the user identified as the same application.

        The secondary is deleted; its open conflicts are closed.
        """
        if primary_id == secondary_id:
            raise RecordValidationError("Cannot merge a record into itself", [primary_id])

        first, second = sorted((primary_id, secondary_id))
        async with self.locks.hold(first):
            async with self.locks.hold(second):
                primary = await self._require(primary_id)
                secondary = await self._require(secondary_id)

                merged = self.resolver.combine(primary, secondary)
                merged = await self.store.update(merged)
                await self.store.delete(secondary_id)
                await self._close_conflicts(secondary_id, "record_merged")
                await self._audit(
                    primary_id,
                    "records_merged",
                    merged_job_id=secondary_id,
                    fields=[f for f in TRACKED_FIELDS if getattr(merged, f) != getattr(primary, f)],
                    record_source=merged.record_source.value,
                )
                self._invalidate(primary.company, primary.position, secondary.company, secondary.position)

        logger.info("Records merged", primary=primary_id, secondary=secondary_id)
        return merged

    # === Helpers ===

    async def _require(self, job_id: str) -> JobRecord:
        record = await self.store.get(job_id)
        if record is None:
            raise RecordNotFoundError(job_id)
        return record

    async def _require_open_conflict(self, conflict_id: str) -> ConflictRecord:
        conflict = await self.store.get_conflict(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(conflict_id)
        if conflict.resolved:
            raise RecordValidationError("Conflict already resolved", [f"conflict {conflict_id} is resolved"])
        return conflict

    async def _audit(self, job_id: str, action: str, **details: Any) -> None:
        await self.store.append_audit(AuditEntry(job_id=job_id, action=action, details=details))

    async def _close_conflicts(self, job_id: str, resolution: str) -> None:
        for conflict in await self.store.list_open_conflicts(job_id):
            conflict.resolved = True
            conflict.requires_review = False
            conflict.resolution = resolution
            conflict.resolved_at = utcnow()
            await self.store.update_conflict(conflict)

    def _invalidate(self, *names: Optional[str]) -> None:
        """Drop cache entries tagged with any of the given company/title strings."""
        for company, position in zip(names[::2], names[1::2]):
            self.cache.invalidate_record(company, position)
        self.cache.clear(CacheNamespace.DUPLICATE_CHECK)

    @staticmethod
    def _creation_key(company: Optional[str], position: Optional[str]) -> str:
        return f"create:{normalize_text(company)}|{normalize_text(position)}"
