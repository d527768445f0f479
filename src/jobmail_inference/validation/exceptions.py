"""
Exceptions for the response normalization stages.

Stages raise these; ResponseNormalizer catches them and moves to the next
recovery step, so none of them escape ``normalize_*``.
"""

from typing import Any


class MalformedOutputError(Exception):
    """
    Base exception for unusable model output.

    Raised when text is unparsable or violates the stage schema.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Args:
            message: Human-readable error description
            details: Structured error data for logging/metrics
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class JSONParseError(MalformedOutputError):
    """No parsable JSON object could be isolated from the text."""

    def __init__(self, message: str, raw_content: str | None = None, parse_error: str | None = None):
        details = {}
        if raw_content:
            details["content_snippet"] = raw_content[:200]
        if parse_error:
            details["parse_error"] = parse_error
        super().__init__(message, details)


class SchemaValidationError(MalformedOutputError):
    """Parsed JSON does not conform to the stage schema."""

    def __init__(self, message: str, validation_errors: list[str] | None = None, schema_name: str | None = None):
        details: dict[str, Any] = {}
        if validation_errors:
            details["validation_errors"] = validation_errors
        if schema_name:
            details["schema_name"] = schema_name
        super().__init__(message, details)
