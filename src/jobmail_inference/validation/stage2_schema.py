"""
Stage 2: JSON Schema validation.

Validate a parsed dict against the stage schema the model was asked to
follow. Violations do not discard the output; the normalizer records them
as warnings and lets field repair salvage what it can.
"""

from typing import Any

import structlog
from jsonschema import Draft7Validator

from .exceptions import SchemaValidationError

logger = structlog.get_logger(__name__)


class Stage2SchemaValidation:
    """
    Stage 2 validator for one stage schema.

    Raises SchemaValidationError listing up to 10 violations.
    """

    def __init__(self, schema: dict[str, Any], name: str):
        """
        Args:
            schema: JSON Schema dict (Draft 7)
            name: Short schema name for error details (stage1, stage2, match)
        """
        Draft7Validator.check_schema(schema)
        self.name = name
        self._validator = Draft7Validator(schema)

    def validate(self, data: dict) -> None:
        errors = sorted(self._validator.iter_errors(data), key=lambda e: list(e.path))
        if not errors:
            logger.debug("Stage 2: schema ok", schema=self.name)
            return

        error_messages = []
        for error in errors[:10]:
            path = ".".join(str(p) for p in error.path) if error.path else "root"
            error_messages.append(f"{path}: {error.message}")

        raise SchemaValidationError(
            f"Output violates {self.name} schema with {len(errors)} error(s)",
            validation_errors=error_messages,
            schema_name=self.name,
        )
