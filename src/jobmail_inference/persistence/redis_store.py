"""
Redis-backed RecordStore.

Storage Strategy:
- Records: String "jobmail:record:{job_id}" holding JobRecord JSON
- Index by creation time: Sorted set "jobmail:records:index" (score = created_at timestamp)
- Audit log: List "jobmail:audit:{job_id}" (RPUSH, oldest first)
- Edit history: List "jobmail:history:{job_id}" (RPUSH, oldest first)
- Conflicts: String "jobmail:conflict:{conflict_id}" holding ConflictRecord JSON
- Open conflicts: Sorted set "jobmail:conflicts:open" (score = created_at timestamp)

Records are the system of record, so no TTLs are set and Redis errors
propagate to the caller.
"""

from datetime import timedelta
from typing import Optional

import structlog
from redis.asyncio import Redis as AsyncRedis

from jobmail_inference.models.conflict_models import ConflictRecord
from jobmail_inference.models.record_models import AuditEntry, EditHistoryEntry, JobRecord, utcnow
from jobmail_inference.persistence.base import RecordStore

logger = structlog.get_logger(__name__)


class RedisRecordStore(RecordStore):
    """RecordStore over redis.asyncio."""

    RECORD_PREFIX = "jobmail:record:"
    RECORDS_INDEX = "jobmail:records:index"
    AUDIT_PREFIX = "jobmail:audit:"
    HISTORY_PREFIX = "jobmail:history:"
    CONFLICT_PREFIX = "jobmail:conflict:"
    OPEN_CONFLICTS = "jobmail:conflicts:open"

    def __init__(self, redis_client: AsyncRedis):
        """
        Args:
            redis_client: AsyncRedis client instance (decode_responses=True)
        """
        self.redis = redis_client

    async def get(self, job_id: str) -> Optional[JobRecord]:
        raw = await self.redis.get(f"{self.RECORD_PREFIX}{job_id}")
        if raw is None:
            return None
        return JobRecord.model_validate_json(raw)

    async def create(self, record: JobRecord) -> JobRecord:
        created = await self.redis.set(f"{self.RECORD_PREFIX}{record.job_id}", record.model_dump_json(), nx=True)
        if not created:
            raise KeyError(f"Record {record.job_id} already exists")
        await self.redis.zadd(self.RECORDS_INDEX, {record.job_id: record.created_at.timestamp()})
        logger.info("Saved record", job_id=record.job_id, record_source=record.record_source.value)
        return record

    async def update(self, record: JobRecord) -> JobRecord:
        updated = await self.redis.set(f"{self.RECORD_PREFIX}{record.job_id}", record.model_dump_json(), xx=True)
        if not updated:
            raise KeyError(f"Record {record.job_id} not found")
        return record

    async def delete(self, job_id: str) -> bool:
        deleted = await self.redis.delete(f"{self.RECORD_PREFIX}{job_id}")
        await self.redis.zrem(self.RECORDS_INDEX, job_id)
        logger.info("Deleted record" if deleted else "Record not found for deletion", job_id=job_id)
        return bool(deleted)

    async def _load_many(self, job_ids: list[str]) -> list[JobRecord]:
        if not job_ids:
            return []
        raws = await self.redis.mget([f"{self.RECORD_PREFIX}{job_id}" for job_id in job_ids])
        return [JobRecord.model_validate_json(raw) for raw in raws if raw is not None]

    async def list_all(self) -> list[JobRecord]:
        return await self._load_many(await self.redis.zrevrange(self.RECORDS_INDEX, 0, -1))

    async def list_recent(self, days: int) -> list[JobRecord]:
        cutoff = (utcnow() - timedelta(days=days)).timestamp()
        job_ids = await self.redis.zrevrangebyscore(self.RECORDS_INDEX, "+inf", cutoff)
        return await self._load_many(job_ids)

    async def append_audit(self, entry: AuditEntry) -> None:
        await self.redis.rpush(f"{self.AUDIT_PREFIX}{entry.job_id}", entry.model_dump_json())

    async def get_audit(self, job_id: str) -> list[AuditEntry]:
        raws = await self.redis.lrange(f"{self.AUDIT_PREFIX}{job_id}", 0, -1)
        return [AuditEntry.model_validate_json(raw) for raw in raws]

    async def append_edit_history(self, entry: EditHistoryEntry) -> None:
        await self.redis.rpush(f"{self.HISTORY_PREFIX}{entry.job_id}", entry.model_dump_json())

    async def get_edit_history(self, job_id: str) -> list[EditHistoryEntry]:
        raws = await self.redis.lrange(f"{self.HISTORY_PREFIX}{job_id}", 0, -1)
        return [EditHistoryEntry.model_validate_json(raw) for raw in raws]

    async def save_conflict(self, conflict: ConflictRecord) -> ConflictRecord:
        await self.redis.set(f"{self.CONFLICT_PREFIX}{conflict.conflict_id}", conflict.model_dump_json())
        if not conflict.resolved:
            await self.redis.zadd(self.OPEN_CONFLICTS, {conflict.conflict_id: conflict.created_at.timestamp()})
        return conflict

    async def get_conflict(self, conflict_id: str) -> Optional[ConflictRecord]:
        raw = await self.redis.get(f"{self.CONFLICT_PREFIX}{conflict_id}")
        if raw is None:
            return None
        return ConflictRecord.model_validate_json(raw)

    async def update_conflict(self, conflict: ConflictRecord) -> ConflictRecord:
        updated = await self.redis.set(
            f"{self.CONFLICT_PREFIX}{conflict.conflict_id}", conflict.model_dump_json(), xx=True
        )
        if not updated:
            raise KeyError(f"Conflict {conflict.conflict_id} not found")
        if conflict.resolved:
            await self.redis.zrem(self.OPEN_CONFLICTS, conflict.conflict_id)
        return conflict

    async def list_open_conflicts(self, job_id: Optional[str] = None) -> list[ConflictRecord]:
        conflict_ids = await self.redis.zrange(self.OPEN_CONFLICTS, 0, -1)
        if not conflict_ids:
            return []
        raws = await self.redis.mget([f"{self.CONFLICT_PREFIX}{cid}" for cid in conflict_ids])
        conflicts = [ConflictRecord.model_validate_json(raw) for raw in raws if raw is not None]
        return [c for c in conflicts if not c.resolved and (job_id is None or c.job_id == job_id)]
