"""In-process RecordStore for tests, single-user deployments and development."""

from collections import defaultdict
from typing import Optional

import structlog

from jobmail_inference.models.conflict_models import ConflictRecord
from jobmail_inference.models.record_models import AuditEntry, EditHistoryEntry, JobRecord
from jobmail_inference.persistence.base import RecordStore

logger = structlog.get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self):
        self._records: dict[str, JobRecord] = {}
        self._audit: dict[str, list[AuditEntry]] = defaultdict(list)
        self._history: dict[str, list[EditHistoryEntry]] = defaultdict(list)
        self._conflicts: dict[str, ConflictRecord] = {}

    async def get(self, job_id: str) -> Optional[JobRecord]:
        record = self._records.get(job_id)
        return record.model_copy(deep=True) if record else None

    async def create(self, record: JobRecord) -> JobRecord:
        if record.job_id in self._records:
            raise KeyError(f"Record {record.job_id} already exists")
        self._records[record.job_id] = record.model_copy(deep=True)
        logger.debug("Record created", job_id=record.job_id)
        return record.model_copy(deep=True)

    async def update(self, record: JobRecord) -> JobRecord:
        if record.job_id not in self._records:
            raise KeyError(f"Record {record.job_id} not found")
        self._records[record.job_id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def delete(self, job_id: str) -> bool:
        return self._records.pop(job_id, None) is not None

    async def list_all(self) -> list[JobRecord]:
        records = sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    async def append_audit(self, entry: AuditEntry) -> None:
        self._audit[entry.job_id].append(entry.model_copy(deep=True))

    async def get_audit(self, job_id: str) -> list[AuditEntry]:
        return [e.model_copy(deep=True) for e in self._audit.get(job_id, [])]

    async def append_edit_history(self, entry: EditHistoryEntry) -> None:
        self._history[entry.job_id].append(entry.model_copy(deep=True))

    async def get_edit_history(self, job_id: str) -> list[EditHistoryEntry]:
        return [e.model_copy(deep=True) for e in self._history.get(job_id, [])]

    async def save_conflict(self, conflict: ConflictRecord) -> ConflictRecord:
        self._conflicts[conflict.conflict_id] = conflict.model_copy(deep=True)
        return conflict

    async def get_conflict(self, conflict_id: str) -> Optional[ConflictRecord]:
        conflict = self._conflicts.get(conflict_id)
        return conflict.model_copy(deep=True) if conflict else None

    async def update_conflict(self, conflict: ConflictRecord) -> ConflictRecord:
        if conflict.conflict_id not in self._conflicts:
            raise KeyError(f"Conflict {conflict.conflict_id} not found")
        self._conflicts[conflict.conflict_id] = conflict.model_copy(deep=True)
        return conflict

    async def list_open_conflicts(self, job_id: Optional[str] = None) -> list[ConflictRecord]:
        conflicts = [
            c for c in self._conflicts.values()
            if not c.resolved and (job_id is None or c.job_id == job_id)
        ]
        return [c.model_copy(deep=True) for c in sorted(conflicts, key=lambda c: c.created_at)]
