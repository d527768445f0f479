"""
Unit tests for API request/response models.
"""

import pytest
from pydantic import ValidationError

from jobmail_inference.api.models import (
    MAX_BATCH_SIZE,
    BatchClassifyRequest,
    ClassifyResponse,
    ConflictListResponse,
    ErrorResponse,
    HealthResponse,
    MergeRequest,
)
from jobmail_inference.models.enums import DuplicateAction
from jobmail_inference.models.output_models import ParseResult


def test_classify_response_model():
    """Test ClassifyResponse wraps a ParseResult."""
    result = ParseResult(is_job_related=True, company="Acme", position="Data Analyst", status="Applied")

    response = ClassifyResponse(result=result, duration_ms=42)

    assert response.status == "success"
    data = response.model_dump(mode="json")
    assert data["result"]["company"] == "Acme"
    assert data["result"]["status"] == "Applied"


def test_classify_response_rejects_negative_duration():
    with pytest.raises(ValidationError):
        ClassifyResponse(result=ParseResult.not_job_related(), duration_ms=-1)


def test_batch_request_validation():
    """Test BatchClassifyRequest size bounds."""
    email = {"subject": "Application received", "body": "Thanks for applying", "sender": "jobs@acme.com"}

    request = BatchClassifyRequest(emails=[email, email])
    assert len(request.emails) == 2
    assert request.emails[0].sender_domain == "acme.com"

    with pytest.raises(ValidationError):
        BatchClassifyRequest(emails=[])

    with pytest.raises(ValidationError):
        BatchClassifyRequest(emails=[email] * (MAX_BATCH_SIZE + 1))


def test_batch_request_rejects_unknown_email_fields():
    with pytest.raises(ValidationError):
        BatchClassifyRequest(emails=[{"subject": "Hi", "body": "x", "attachments": []}])


def test_merge_request_defaults_to_merge():
    request = MergeRequest(secondary_id="job-2")

    assert request.action is DuplicateAction.MERGE_RECORDS
    assert MergeRequest(secondary_id="job-2", action="keep_both").action is DuplicateAction.KEEP_BOTH

    with pytest.raises(ValidationError):
        MergeRequest(secondary_id="job-2", action="ignore")


def test_conflict_list_response_empty():
    response = ConflictListResponse(count=0, conflicts=[])

    assert response.model_dump() == {"count": 0, "conflicts": []}


def test_health_response_model():
    """Test HealthResponse model."""
    response = HealthResponse(
        status="degraded",
        version="0.1.0",
        services={"ollama": "unreachable", "redis": "not_configured"},
    )

    assert response.sessions == {}
    assert response.cache == {}
    assert response.timestamp.tzinfo is not None


def test_error_response_model():
    """Test ErrorResponse model."""
    response = ErrorResponse(
        error="duplicate_conflict",
        message="Potential duplicate record detected",
        details={"duplicate_job_id": "job-1"},
    )

    assert response.error == "duplicate_conflict"
    assert response.details["duplicate_job_id"] == "job-1"
