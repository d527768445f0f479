"""
Record and conflict routes.

Errors are raised, not returned: ConflictError -> 409,
RecordValidationError -> 422, *NotFoundError -> 404 (see error_handlers).
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status

from jobmail_inference.api.dependencies import get_record_service
from jobmail_inference.api.models import ConflictListResponse, MergeRequest
from jobmail_inference.models.conflict_models import (
    ConflictDecision,
    CreateRecordResult,
    EditRecordResult,
    ResolveConflictResult,
)
from jobmail_inference.models.record_models import JobRecord, ManualRecordInput, RecordUpdate
from jobmail_inference.records.service import RecordService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/records",
    response_model=CreateRecordResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create a manual record",
    responses={
        409: {"description": "A certain duplicate already exists"},
        422: {"description": "Missing or malformed fields"},
    },
)
async def create_record(
    data: ManualRecordInput,
    records: RecordService = Depends(get_record_service),
) -> CreateRecordResult:
    return await records.create_manual_record(data)


@router.get(
    "/records/{job_id}",
    response_model=JobRecord,
    summary="Get a record",
    responses={404: {"description": "Unknown job_id"}},
)
async def get_record(job_id: str, records: RecordService = Depends(get_record_service)) -> JobRecord:
    return await records.get_record(job_id)


@router.patch(
    "/records/{job_id}",
    response_model=EditRecordResult,
    summary="Edit a record",
    description="""
    Apply a partial update. Only fields present in the body change.
    The record's source moves toward manual/hybrid and never back.
    """,
    responses={
        404: {"description": "Unknown job_id"},
        409: {"description": "The edit would duplicate another record"},
        422: {"description": "Malformed update"},
    },
)
async def edit_record(
    job_id: str,
    updates: RecordUpdate,
    records: RecordService = Depends(get_record_service),
) -> EditRecordResult:
    return await records.edit_record(job_id, updates)


@router.post(
    "/records/{job_id}/merge",
    response_model=JobRecord,
    summary="Resolve a duplicate pair",
    description="""
    ``merge_records`` folds the secondary into this record and deletes it;
    ``delete_duplicate`` deletes the secondary; ``keep_both`` only logs the decision.
    """,
    responses={404: {"description": "Unknown job_id"}},
)
async def merge_record(
    job_id: str,
    request: MergeRequest,
    records: RecordService = Depends(get_record_service),
) -> JobRecord:
    logger.info("Duplicate decision received", primary=job_id, secondary=request.secondary_id, action=request.action.value)
    return await records.resolve_duplicate(request.action, job_id, request.secondary_id)


@router.get(
    "/conflicts",
    response_model=ConflictListResponse,
    summary="List conflicts awaiting review",
)
async def list_conflicts(
    job_id: Optional[str] = None,
    records: RecordService = Depends(get_record_service),
) -> ConflictListResponse:
    conflicts = await records.list_conflicts(job_id)
    return ConflictListResponse(count=len(conflicts), conflicts=conflicts)


@router.post(
    "/conflicts/{conflict_id}/resolve",
    response_model=ResolveConflictResult,
    summary="Resolve a flagged conflict",
    responses={
        404: {"description": "Unknown conflict_id or record"},
        422: {"description": "Already resolved or invalid custom value"},
    },
)
async def resolve_conflict(
    conflict_id: str,
    decision: ConflictDecision,
    records: RecordService = Depends(get_record_service),
) -> ResolveConflictResult:
    return await records.resolve_conflict(conflict_id, decision)
