"""
Multi-stage response normalizer.

- pipeline.py: ResponseNormalizer orchestrating all stages (never raises)
- stage1_json_parse.py: Wrapper stripping, balanced-object isolation, repair pass
- stage2_schema.py: JSON Schema validation (violations become warnings)
- stage3_regex_extract.py: key/value extraction when no JSON parses
- stage4_field_repair.py: Field cleaning, placeholder rejection, enum clamping
"""

from .exceptions import (
    JSONParseError,
    MalformedOutputError,
    SchemaValidationError,
)
from .pipeline import NormalizedResponse, ResponseNormalizer

__all__ = [
    # Main pipeline
    "ResponseNormalizer",
    "NormalizedResponse",
    # Exceptions
    "MalformedOutputError",
    "JSONParseError",
    "SchemaValidationError",
]
