"""
Every exception the package raises, importable from one place.

Inference-path errors (SessionInitError, InferenceError, InferenceTimeoutError,
LLMClientError, MalformedOutputError) are recovered inside ``classify``.
Record errors (ConflictError, RecordValidationError, RecordNotFoundError,
ConflictNotFoundError) propagate to the caller.
"""

from jobmail_inference.inference.exceptions import InferenceError, InferenceTimeoutError, SessionInitError
from jobmail_inference.llm.exceptions import (
    LLMClientError,
    LLMConnectionError,
    LLMGenerationError,
    LLMModelNotAvailableError,
    LLMSessionInvalidError,
    LLMTimeoutError,
)
from jobmail_inference.records.exceptions import (
    ConflictError,
    ConflictNotFoundError,
    RecordError,
    RecordNotFoundError,
    RecordValidationError,
)
from jobmail_inference.validation.exceptions import JSONParseError, MalformedOutputError, SchemaValidationError

__all__ = [
    "ConflictError",
    "ConflictNotFoundError",
    "InferenceError",
    "InferenceTimeoutError",
    "JSONParseError",
    "LLMClientError",
    "LLMConnectionError",
    "LLMGenerationError",
    "LLMModelNotAvailableError",
    "LLMSessionInvalidError",
    "LLMTimeoutError",
    "MalformedOutputError",
    "RecordError",
    "RecordNotFoundError",
    "RecordValidationError",
    "SchemaValidationError",
    "SessionInitError",
]
