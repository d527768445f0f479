"""
FastAPI exception handlers for structured error responses.

Maps record exceptions to HTTP status codes. Inference errors never get
here: ``classify`` always answers with a ParseResult.
"""

from datetime import datetime, timezone

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from jobmail_inference.records.exceptions import (
    ConflictError,
    ConflictNotFoundError,
    RecordNotFoundError,
    RecordValidationError,
)

logger = structlog.get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """
    Handle blocking duplicates.

    Maps to 409 Conflict; the full duplicate report goes back so the client
    can offer merge / keep both.
    """
    logger.warning("Duplicate conflict", **exc.details)

    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "duplicate_conflict",
            "message": exc.message,
            "details": exc.details,
            "report": exc.report.model_dump(mode="json"),
            "timestamp": _now(),
        },
    )


async def record_validation_error_handler(request: Request, exc: RecordValidationError) -> JSONResponse:
    """
    Handle invalid record data.

    Maps to 422 Unprocessable Entity.
    """
    logger.warning("Record validation failed", errors=exc.errors)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_failed",
            "message": exc.message,
            "details": exc.details,
            "timestamp": _now(),
        },
    )


async def not_found_error_handler(
    request: Request, exc: RecordNotFoundError | ConflictNotFoundError
) -> JSONResponse:
    logger.info("Not found", **exc.details)

    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "not_found",
            "message": exc.message,
            "details": exc.details,
            "timestamp": _now(),
        },
    )


async def pydantic_validation_error_handler(request: Request, exc: PydanticValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors raised outside request parsing.

    Maps to 400 Bad Request (client error).
    """
    logger.warning("Invalid request format", errors=exc.errors())

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "invalid_request",
            "message": "Request validation failed",
            "details": exc.errors(include_url=False, include_context=False),
            "timestamp": _now(),
        },
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected errors.

    Maps to 500 Internal Server Error.
    """
    logger.exception("Unexpected error", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "timestamp": _now(),
        },
    )


# Exception handler mapping for FastAPI app.add_exception_handler()
EXCEPTION_HANDLERS = {
    ConflictError: conflict_error_handler,
    RecordValidationError: record_validation_error_handler,
    RecordNotFoundError: not_found_error_handler,
    ConflictNotFoundError: not_found_error_handler,
    PydanticValidationError: pydantic_validation_error_handler,
    Exception: generic_error_handler,
}
