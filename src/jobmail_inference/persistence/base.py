"""
Record store interface.

CRUD over JobRecord keyed by job_id, plus append-only audit and
edit-history logs and the table of conflicts awaiting review. All
methods are async so Redis-backed and in-memory stores are interchangeable.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional

from jobmail_inference.models.conflict_models import ConflictRecord
from jobmail_inference.models.record_models import AuditEntry, EditHistoryEntry, JobRecord, utcnow


class RecordStore(ABC):
    """
    Abstract record store.

    Implementations return copies: mutating a returned JobRecord never
    changes stored state until ``update`` is called.
    """

    # === Records ===

    @abstractmethod
    async def get(self, job_id: str) -> Optional[JobRecord]:
        """Return the record, or None if it does not exist."""

    @abstractmethod
    async def create(self, record: JobRecord) -> JobRecord:
        """Insert a new record (job_id must be unused)."""

    @abstractmethod
    async def update(self, record: JobRecord) -> JobRecord:
        """Replace an existing record; raises KeyError if absent."""

    @abstractmethod
    async def delete(self, job_id: str) -> bool:
        """Delete a record; returns False if it did not exist."""

    @abstractmethod
    async def list_all(self) -> list[JobRecord]:
        """Every record, newest first."""

    async def list_recent(self, days: int) -> list[JobRecord]:
        """Records created within the last ``days`` days, newest first."""
        cutoff = utcnow() - timedelta(days=days)
        return [r for r in await self.list_all() if r.created_at >= cutoff]

    async def search(self, company: Optional[str] = None, title: Optional[str] = None) -> list[JobRecord]:
        """Case-insensitive substring match on company and/or position."""
        company_q = (company or "").lower()
        title_q = (title or "").lower()
        results = []
        for record in await self.list_all():
            if company_q and company_q not in (record.company or "").lower():
                continue
            if title_q and title_q not in (record.position or "").lower():
                continue
            results.append(record)
        return results

    # === Logs ===

    @abstractmethod
    async def append_audit(self, entry: AuditEntry) -> None:
        ...

    @abstractmethod
    async def get_audit(self, job_id: str) -> list[AuditEntry]:
        """Audit entries for a record, oldest first."""

    @abstractmethod
    async def append_edit_history(self, entry: EditHistoryEntry) -> None:
        ...

    @abstractmethod
    async def get_edit_history(self, job_id: str) -> list[EditHistoryEntry]:
        """Edit history for a record, oldest first."""

    # === Conflicts awaiting review ===

    @abstractmethod
    async def save_conflict(self, conflict: ConflictRecord) -> ConflictRecord:
        ...

    @abstractmethod
    async def get_conflict(self, conflict_id: str) -> Optional[ConflictRecord]:
        ...

    @abstractmethod
    async def update_conflict(self, conflict: ConflictRecord) -> ConflictRecord:
        ...

    @abstractmethod
    async def list_open_conflicts(self, job_id: Optional[str] = None) -> list[ConflictRecord]:
        """Unresolved conflicts, optionally for one record, oldest first."""

    async def close(self) -> None:
        """Release backend resources."""
