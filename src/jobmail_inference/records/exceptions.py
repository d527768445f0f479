"""
Exceptions for record creation, editing and reconciliation.

Unlike the inference-path errors these are never recovered locally: they
propagate to the caller (API handlers map them to 409 / 422 / 404).
"""

from typing import Any

from jobmail_inference.models.conflict_models import DuplicateReport


class RecordError(Exception):
    """Base exception for record operations."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Args:
            message: Human-readable error description
            details: Structured error data for logging and API responses
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConflictError(RecordError):
    """
    A create or edit would produce a certain duplicate.

    Carries the full DuplicateReport so the caller can offer merge / keep both.
    """

    def __init__(self, message: str, report: DuplicateReport):
        best = report.best_match
        super().__init__(
            message,
            details={
                "risk_level": report.risk_level.value,
                "recommendation": report.recommendation.value,
                "duplicate_job_id": best.job_id if best else None,
            },
        )
        self.report = report


class RecordValidationError(RecordError):
    """Caller-supplied record data failed shape checks."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, details={"errors": errors or []})
        self.errors = errors or []


class RecordNotFoundError(RecordError):
    def __init__(self, job_id: str):
        super().__init__(f"Job record {job_id} not found", details={"job_id": job_id})
        self.job_id = job_id


class ConflictNotFoundError(RecordError):
    def __init__(self, conflict_id: str):
        super().__init__(f"Conflict {conflict_id} not found", details={"conflict_id": conflict_id})
        self.conflict_id = conflict_id
