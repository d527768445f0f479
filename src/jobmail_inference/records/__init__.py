"""
Record lifecycle: manual creation, edits, automatic ingest and review.

- service.py: RecordService
- exceptions.py: ConflictError, RecordValidationError, RecordNotFoundError, ConflictNotFoundError
"""

from .exceptions import ConflictError, ConflictNotFoundError, RecordError, RecordNotFoundError, RecordValidationError
from .service import RecordService

__all__ = [
    "ConflictError",
    "ConflictNotFoundError",
    "RecordError",
    "RecordNotFoundError",
    "RecordService",
    "RecordValidationError",
]
