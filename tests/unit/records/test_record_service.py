"""
Unit tests for RecordService (manual records, edits, ingest and review decisions).
"""

import asyncio

import pytest

from jobmail_inference.cache.tiered import CacheNamespace
from jobmail_inference.exceptions import (
    ConflictError,
    ConflictNotFoundError,
    RecordNotFoundError,
    RecordValidationError,
)
from jobmail_inference.models.conflict_models import ResolveConflictResult
from jobmail_inference.models.enums import (
    ConflictType,
    DuplicateRisk,
    IngestAction,
    JobStatus,
    RecordSource,
)
from jobmail_inference.models.record_models import ManualRecordInput, RecordUpdate
from jobmail_inference.persistence.memory_store import InMemoryRecordStore
from jobmail_inference.records.service import validate_manual_input, validate_update
from jobmail_inference.service import build_service

STAGE2_INTERVIEW = '{"company": "Acme", "position": "Data Analyst", "status": "Interview", "confidence": 0.8}'
STAGE2_APPLIED = '{"company": "Acme", "position": "Data Analyst", "status": "Applied", "confidence": 0.8}'


class TestValidation:

    def test_manual_input_defaults_status(self):
        values = validate_manual_input(ManualRecordInput(company=" Acme ", position="Data  Analyst", status=None))

        assert values["company"] == "Acme"
        assert values["position"] == "Data Analyst"
        assert values["status"] is JobStatus.APPLIED
        assert values["sender_domain"] is None

    def test_manual_input_lists_every_error(self):
        with pytest.raises(RecordValidationError) as exc_info:
            validate_manual_input(ManualRecordInput(company="A", position=None, status="Pending"))

        errors = exc_info.value.errors
        assert len(errors) == 3
        assert any(e.startswith("company is required") for e in errors)
        assert any(e.startswith("position is required") for e in errors)
        assert any("Invalid status 'Pending'" in e for e in errors)

    def test_update_only_checks_set_fields(self):
        assert validate_update(RecordUpdate(notes="call back")) == {"notes": "call back"}

    def test_update_cannot_clear_required_fields(self):
        with pytest.raises(RecordValidationError):
            validate_update(RecordUpdate(company=None))
        with pytest.raises(RecordValidationError):
            validate_update(RecordUpdate(status=None))

    def test_update_can_clear_optional_fields(self):
        assert validate_update(RecordUpdate(location=None, notes="  ")) == {"location": None, "notes": None}


class TestManualRecords:

    @pytest.fixture(autouse=True)
    def _service(self, create_test_service):
        self.records = create_test_service().records
        self.store = self.records.store

    @pytest.mark.asyncio
    async def test_create(self):
        result = await self.records.create_manual_record(
            {"company": "Acme", "position": "Data Analyst", "location": "Remote", "sender_domain": "Acme.com"}
        )

        record = result.record
        assert record.record_source is RecordSource.MANUAL_CREATED
        assert record.status is JobStatus.APPLIED
        assert record.sender_domain == "acme.com"
        assert result.conflicts.risk_level is DuplicateRisk.NONE
        meta = record.current_metadata("company")
        assert meta.user_override is True
        assert meta.confidence == 1.0
        assert record.current_metadata("notes") is None

        audit = await self.records.get_audit(result.job_id)
        assert [e.action for e in audit] == ["record_created"]
        assert await self.store.get(result.job_id) == record

    @pytest.mark.asyncio
    async def test_invalid_input_is_rejected(self):
        with pytest.raises(RecordValidationError):
            await self.records.create_manual_record({"company": "Acme", "position": "", "status": "Applied"})

        assert await self.store.list_all() == []

    @pytest.mark.asyncio
    async def test_exact_duplicate_is_blocked(self):
        first = await self.records.create_manual_record({"company": "Acme", "position": "Data Analyst"})

        with pytest.raises(ConflictError) as exc_info:
            await self.records.create_manual_record({"company": "ACME Inc.", "position": "data analyst"})

        assert exc_info.value.details["duplicate_job_id"] == first.job_id
        assert exc_info.value.report.risk_level is DuplicateRisk.CRITICAL
        assert len(await self.store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_near_duplicate_is_reported_not_blocked(self):
        await self.records.create_manual_record({"company": "Acme", "position": "Data Analyst"})

        result = await self.records.create_manual_record({"company": "Acme", "position": "Data Analyst Intern"})

        assert result.conflicts.risk_level is DuplicateRisk.HIGH
        assert len(await self.store.list_all()) == 2

    @pytest.mark.asyncio
    async def test_manual_records_are_not_cached(self):
        result = await self.records.create_manual_record({"company": "Acme", "position": "Data Analyst"})

        await self.records.get_record(result.job_id)

        assert self.records.cache.size(CacheNamespace.MANUAL_RECORD) == 0

    @pytest.mark.asyncio
    async def test_duplicate_check_cache_cleared_on_write(self):
        await self.records.create_manual_record({"company": "Acme", "position": "Data Analyst"})

        assert self.records.cache.size(CacheNamespace.DUPLICATE_CHECK) == 0

    @pytest.mark.asyncio
    async def test_unknown_record(self):
        with pytest.raises(RecordNotFoundError):
            await self.records.get_record("missing")
        with pytest.raises(RecordNotFoundError):
            await self.records.edit_record("missing", {"notes": "x"})


class TestEditRecord:

    @pytest.fixture(autouse=True)
    def _service(self, create_test_service):
        self.records = create_test_service().records
        self.store = self.records.store

    @pytest.mark.asyncio
    async def test_source_upgrades_are_monotonic(self, create_test_record):
        record = await self.store.create(create_test_record())

        first = await self.records.edit_record(record.job_id, {"status": "Interview"})
        second = await self.records.edit_record(record.job_id, {"status": "Offer"})
        third = await self.records.edit_record(record.job_id, {"notes": "signed"})

        assert first.record.record_source is RecordSource.MANUAL_EDITED
        assert second.record.record_source is RecordSource.HYBRID
        assert third.record.record_source is RecordSource.HYBRID

    @pytest.mark.asyncio
    async def test_changes_and_history(self, create_test_record):
        record = await self.store.create(create_test_record())

        result = await self.records.edit_record(record.job_id, RecordUpdate(status="Interview", notes="Onsite Friday"))

        assert result.changes == {
            "status": {"old": "Applied", "new": "Interview"},
            "notes": {"old": None, "new": "Onsite Friday"},
        }
        meta = result.record.current_metadata("status")
        assert meta.user_override is True
        assert meta.previous_value == "Applied"
        assert meta.source is RecordSource.MANUAL_EDITED

        history = await self.records.get_edit_history(record.job_id)
        assert sorted(h.field for h in history) == ["notes", "status"]
        audit = await self.records.get_audit(record.job_id)
        assert audit[-1].action == "record_edited"
        assert audit[-1].details["fields"] == ["notes", "status"]
        assert audit[-1].details["previous_source"] == "auto_inferred"

    @pytest.mark.asyncio
    async def test_noop_edit(self, create_test_record):
        record = await self.store.create(create_test_record())

        result = await self.records.edit_record(record.job_id, {"company": "Acme"})

        assert result.changes == {}
        assert result.record.record_source is RecordSource.AUTO_INFERRED
        assert await self.records.get_audit(record.job_id) == []

    @pytest.mark.asyncio
    async def test_edit_into_duplicate_is_blocked(self, create_test_record):
        await self.store.create(create_test_record(company="Acme", position="Data Analyst"))
        other = await self.store.create(create_test_record(company="Globex", position="Backend Engineer"))

        with pytest.raises(ConflictError):
            await self.records.edit_record(other.job_id, {"company": "Acme", "position": "Data Analyst"})

        assert (await self.store.get(other.job_id)).company == "Globex"

    @pytest.mark.asyncio
    async def test_renaming_itself_is_not_a_duplicate(self, create_test_record):
        record = await self.store.create(create_test_record(company="Acme", position="Data Analyst"))

        result = await self.records.edit_record(record.job_id, {"position": "Data Analyst II"})

        assert result.record.position == "Data Analyst II"

    @pytest.mark.asyncio
    async def test_edit_invalidates_cached_record(self, create_test_record):
        record = await self.store.create(create_test_record())
        await self.records.get_record(record.job_id)
        assert self.records.cache.size(CacheNamespace.MANUAL_RECORD) == 1

        await self.records.edit_record(record.job_id, {"status": "Interview"})

        assert self.records.cache.size(CacheNamespace.MANUAL_RECORD) == 0
        assert (await self.records.get_record(record.job_id)).status is JobStatus.INTERVIEW

    @pytest.mark.asyncio
    async def test_invalid_status(self, create_test_record):
        record = await self.store.create(create_test_record())

        with pytest.raises(RecordValidationError):
            await self.records.edit_record(record.job_id, {"status": "Ghosted"})


class TestIngest:

    @pytest.fixture(autouse=True)
    def _service(self, create_test_service, fake_engine):
        self.engine = fake_engine
        self.records = create_test_service().records
        self.store = self.records.store

    @pytest.mark.asyncio
    async def test_creates_inferred_record(self, create_test_email):
        email = create_test_email()

        result = await self.records.ingest(email)

        assert result.action is IngestAction.CREATED
        record = await self.store.get(result.job_id)
        assert record.record_source is RecordSource.AUTO_INFERRED
        assert (record.company, record.position, record.status) == ("Acme", "Data Analyst", JobStatus.APPLIED)
        assert record.sender_domain == "globex.com"
        assert record.llm_confidence == pytest.approx(0.92)
        assert record.original_classification == result.parse_result
        assert record.source_email == email

    @pytest.mark.asyncio
    async def test_not_job_related_is_skipped(self, sample_emails):
        self.engine.responses["stage1"] = '{"is_job": false}'

        result = await self.records.ingest(sample_emails["newsletter"])

        assert result.action is IngestAction.SKIPPED
        assert result.job_id is None
        assert await self.store.list_all() == []

    @pytest.mark.asyncio
    async def test_follow_up_email_merges(self, create_test_email):
        first = await self.records.ingest(create_test_email(body="Thanks for applying to Acme."))
        self.engine.responses["stage2"] = STAGE2_INTERVIEW

        second = await self.records.ingest(create_test_email(body="Let's schedule your Acme interview."))

        assert second.action is IngestAction.MERGED
        assert second.job_id == first.job_id
        assert second.duplicates.risk_level is DuplicateRisk.CRITICAL
        assert second.flagged_conflicts == []
        record = await self.store.get(first.job_id)
        assert record.status is JobStatus.INTERVIEW
        assert len(await self.store.list_all()) == 1

        audit = await self.records.get_audit(first.job_id)
        assert audit[-1].action == "conflict_auto_resolved"
        assert audit[-1].details["field"] == "status"

    async def _ingest_regression(self, create_test_email):
        self.engine.responses["stage2"] = STAGE2_INTERVIEW
        first = await self.records.ingest(create_test_email(body="Interview invitation from Acme."))
        self.engine.responses["stage2"] = STAGE2_APPLIED
        second = await self.records.ingest(create_test_email(body="We received your Acme application."))
        return first, second

    @pytest.mark.asyncio
    async def test_status_regression_is_flagged(self, create_test_email):
        first, second = await self._ingest_regression(create_test_email)

        assert second.action is IngestAction.MERGED
        [conflict] = second.flagged_conflicts
        assert conflict.conflict_type is ConflictType.STATUS_REGRESSION
        assert (await self.store.get(first.job_id)).status is JobStatus.INTERVIEW
        assert [c.conflict_id for c in await self.records.list_conflicts(first.job_id)] == [conflict.conflict_id]

    @pytest.mark.asyncio
    async def test_accept_new(self, create_test_email):
        first, second = await self._ingest_regression(create_test_email)
        conflict_id = second.flagged_conflicts[0].conflict_id

        result = await self.records.resolve_conflict(conflict_id, {"action": "accept_new"})

        assert result.conflict.resolved
        assert result.conflict.resolution == "accept_new"
        assert result.record.status is JobStatus.APPLIED
        meta = result.record.current_metadata("status")
        assert meta.source is RecordSource.AUTO_INFERRED
        assert meta.previous_value == "Interview"
        assert result.record.record_source is RecordSource.AUTO_INFERRED
        assert await self.records.list_conflicts() == []

        resolved = [e for e in await self.records.get_audit(first.job_id) if e.action == "conflict_resolved"]
        assert len(resolved) == 1
        assert resolved[0].details["decision"] == "accept_new"
        assert resolved[0].details["conflict_id"] == conflict_id
        assert resolved[0].details["value"] == "Applied"

    @pytest.mark.asyncio
    async def test_keep_existing(self, create_test_email):
        first, second = await self._ingest_regression(create_test_email)
        before = await self.store.get(first.job_id)

        result = await self.records.resolve_conflict(second.flagged_conflicts[0].conflict_id, {"action": "keep_existing"})

        assert result.conflict.resolved
        assert result.record == before

    @pytest.mark.asyncio
    async def test_custom_value(self, create_test_email):
        first, second = await self._ingest_regression(create_test_email)

        result = await self.records.resolve_conflict(
            second.flagged_conflicts[0].conflict_id, {"action": "custom_value", "value": "Offer", "note": "called"}
        )

        assert result.record.status is JobStatus.OFFER
        assert result.record.record_source is RecordSource.MANUAL_EDITED
        assert result.record.current_metadata("status").user_override is True
        audit = await self.records.get_audit(first.job_id)
        assert audit[-1].action == "conflict_resolved"
        assert audit[-1].details["note"] == "called"

    @pytest.mark.asyncio
    async def test_custom_value_is_validated(self, create_test_email):
        _, second = await self._ingest_regression(create_test_email)
        conflict_id = second.flagged_conflicts[0].conflict_id

        with pytest.raises(RecordValidationError):
            await self.records.resolve_conflict(conflict_id, {"action": "custom_value"})
        with pytest.raises(RecordValidationError):
            await self.records.resolve_conflict(conflict_id, {"action": "custom_value", "value": "Pending"})

    @pytest.mark.asyncio
    async def test_resolving_twice(self, create_test_email):
        _, second = await self._ingest_regression(create_test_email)
        conflict_id = second.flagged_conflicts[0].conflict_id
        await self.records.resolve_conflict(conflict_id, {"action": "keep_existing"})

        with pytest.raises(RecordValidationError):
            await self.records.resolve_conflict(conflict_id, {"action": "accept_new"})

    @pytest.mark.asyncio
    async def test_unknown_conflict(self):
        with pytest.raises(ConflictNotFoundError):
            await self.records.resolve_conflict("missing", {"action": "keep_existing"})


class SuspendingRecordStore(InMemoryRecordStore):
    """In-memory store whose reads yield to the loop, as a networked store does."""

    async def get(self, job_id):
        await asyncio.sleep(0)
        return await super().get(job_id)

    async def list_all(self):
        await asyncio.sleep(0)
        return await super().list_all()

    async def get_conflict(self, conflict_id):
        await asyncio.sleep(0)
        return await super().get_conflict(conflict_id)


class TestConcurrentWrites:

    @pytest.fixture(autouse=True)
    def _service(self, test_settings, fake_engine):
        self.engine = fake_engine
        self.records = build_service(test_settings, engine=fake_engine, store=SuspendingRecordStore()).records
        self.store = self.records.store

    @pytest.mark.asyncio
    async def test_concurrent_decisions_apply_once(self, create_test_email):
        self.engine.responses["stage2"] = STAGE2_INTERVIEW
        first = await self.records.ingest(create_test_email(body="Interview invitation from Acme."))
        self.engine.responses["stage2"] = STAGE2_APPLIED
        second = await self.records.ingest(create_test_email(body="We received your Acme application."))
        conflict_id = second.flagged_conflicts[0].conflict_id

        outcomes = await asyncio.gather(
            self.records.resolve_conflict(conflict_id, {"action": "custom_value", "value": "Offer"}),
            self.records.resolve_conflict(conflict_id, {"action": "accept_new"}),
            return_exceptions=True,
        )

        assert isinstance(outcomes[0], ResolveConflictResult)
        assert isinstance(outcomes[1], RecordValidationError)
        assert (await self.store.get(first.job_id)).status is JobStatus.OFFER
        audit = await self.records.get_audit(first.job_id)
        assert [e.details["decision"] for e in audit if e.action == "conflict_resolved"] == ["custom_value"]

    @pytest.mark.asyncio
    async def test_rename_and_create_cannot_both_take_a_name(self, create_test_record):
        other = await self.store.create(create_test_record(company="Globex", position="Backend Engineer"))

        outcomes = await asyncio.gather(
            self.records.edit_record(other.job_id, {"company": "Acme", "position": "Data Analyst"}),
            self.records.create_manual_record({"company": "Acme", "position": "Data Analyst"}),
            return_exceptions=True,
        )

        assert sum(isinstance(o, ConflictError) for o in outcomes) == 1
        names = [(r.company, r.position) for r in await self.store.list_all()]
        assert names.count(("Acme", "Data Analyst")) == 1


class TestDuplicateDecisions:

    @pytest.fixture(autouse=True)
    def _service(self, create_test_service):
        self.records = create_test_service().records
        self.store = self.records.store

    async def _pair(self, create_test_record):
        created = await self.records.create_manual_record(
            {"company": "Acme", "position": "Data Analyst", "notes": "first"}
        )
        secondary = await self.store.create(
            create_test_record(status=JobStatus.INTERVIEW, notes="second", location="Remote")
        )
        return created.record, secondary

    @pytest.mark.asyncio
    async def test_merge_records(self, create_test_record):
        primary, secondary = await self._pair(create_test_record)

        merged = await self.records.merge_records(primary.job_id, secondary.job_id)

        assert merged.job_id == primary.job_id
        assert merged.status is JobStatus.INTERVIEW
        assert merged.location == "Remote"
        assert merged.notes == "first\n---\nsecond"
        assert merged.record_source is RecordSource.HYBRID
        assert await self.store.get(secondary.job_id) is None
        audit = await self.records.get_audit(primary.job_id)
        assert audit[-1].action == "records_merged"
        assert audit[-1].details["merged_job_id"] == secondary.job_id

    @pytest.mark.asyncio
    async def test_merge_into_itself(self, create_test_record):
        primary, _ = await self._pair(create_test_record)

        with pytest.raises(RecordValidationError):
            await self.records.merge_records(primary.job_id, primary.job_id)

    @pytest.mark.asyncio
    async def test_delete_duplicate(self, create_test_record):
        primary, secondary = await self._pair(create_test_record)

        kept = await self.records.resolve_duplicate("delete_duplicate", primary.job_id, secondary.job_id)

        assert kept.job_id == primary.job_id
        assert await self.store.get(secondary.job_id) is None
        assert (await self.records.get_audit(primary.job_id))[-1].action == "duplicate_deleted"

    @pytest.mark.asyncio
    async def test_keep_both(self, create_test_record):
        primary, secondary = await self._pair(create_test_record)

        await self.records.resolve_duplicate("keep_both", primary.job_id, secondary.job_id)

        assert len(await self.store.list_all()) == 2
        assert (await self.records.get_audit(secondary.job_id))[-1].action == "duplicate_kept"

    @pytest.mark.asyncio
    async def test_missing_partner(self, create_test_record):
        primary, _ = await self._pair(create_test_record)

        with pytest.raises(RecordNotFoundError):
            await self.records.resolve_duplicate("keep_both", primary.job_id, "missing")

    @pytest.mark.asyncio
    async def test_unknown_action(self, create_test_record):
        primary, secondary = await self._pair(create_test_record)

        with pytest.raises(ValueError):
            await self.records.resolve_duplicate("ignore", primary.job_id, secondary.job_id)
