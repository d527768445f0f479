"""
Response normalizer: multi-stage recovery of structured output.

Coordinates the normalization stages:
- Stage 1: JSON isolation + strict parse, then repair pass
- Stage 2: JSON Schema check (violations become warnings)
- Stage 3: Regex key/value extraction (only when Stage 1 failed)
- Stage 4: Field repair (cleaning, clamping, placeholder rejection)

Nothing here raises. When no usable value can be recovered the outcome
carries method CONSERVATIVE and a None result, and the caller falls back.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, Optional, TypeVar

import structlog

from jobmail_inference.llm.prompt_builder import load_schema
from jobmail_inference.models.enums import NormalizationMethod
from jobmail_inference.models.output_models import ClassificationResult, ParseResult
from jobmail_inference.monitoring.metrics import normalization_total
from jobmail_inference.validation.exceptions import (
    JSONParseError,
    MalformedOutputError,
    SchemaValidationError,
)
from jobmail_inference.validation.stage1_json_parse import Stage1JSONParse
from jobmail_inference.validation.stage2_schema import Stage2SchemaValidation
from jobmail_inference.validation.stage3_regex_extract import Stage3RegexExtraction
from jobmail_inference.validation.stage4_field_repair import Stage4FieldRepair

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Base confidence by recovery method when the model did not report one
METHOD_CONFIDENCE = {
    NormalizationMethod.STRICT: 0.85,
    NormalizationMethod.REPAIRED: 0.75,
    NormalizationMethod.REGEX: 0.6,
}
MISSING_FIELD_PENALTY = 0.1
MIN_DERIVED_CONFIDENCE = 0.3

_STAGE_FIELDS = {
    "stage1": ("is_job", "risk_level"),
    "stage2": ("company", "position", "status", "confidence"),
    "match": ("same_job",),
}


@dataclass
class NormalizedResponse(Generic[T]):
    """Outcome of normalizing one raw generation."""

    result: Optional[T]
    method: NormalizationMethod
    warnings: list[str] = field(default_factory=list)

    @property
    def is_conservative(self) -> bool:
        return self.method is NormalizationMethod.CONSERVATIVE


class ResponseNormalizer:
    """
    Turn raw model text into validated result objects.

    One instance is shared by all stages; it holds compiled schema validators
    and is otherwise stateless.
    """

    def __init__(self, schemas_dir: Optional[Path] = None):
        """
        Args:
            schemas_dir: Directory holding the stage schemas (bundled copies if None)
        """
        self.stage1 = Stage1JSONParse()
        self.schema_validators = {
            name: Stage2SchemaValidation(load_schema(name, schemas_dir), name=name)
            for name in _STAGE_FIELDS
        }
        self.stage3 = Stage3RegexExtraction()
        self.stage4 = Stage4FieldRepair()

    def normalize_classification(self, content: str) -> NormalizedResponse[ClassificationResult]:
        """Normalize Stage 1 output into a ClassificationResult."""
        data, method, warnings = self._recover(content, "stage1")
        if data is None:
            return self._conservative("stage1", warnings)

        is_job = self.stage4.repair_bool(data.get("is_job"))
        if is_job is None:
            warnings.append(f"is_job not a boolean: {data.get('is_job')!r}")
            return self._conservative("stage1", warnings)

        raw_risk = data.get("risk_level")
        risk_level = self.stage4.repair_risk_level(raw_risk)
        if raw_risk is not None and str(raw_risk).lower() != risk_level.value:
            warnings.append(f"risk_level clamped from {raw_risk!r} to {risk_level.value}")

        return self._done(
            "stage1",
            ClassificationResult(is_job_related=is_job, risk_level=risk_level),
            method,
            warnings,
        )

    def normalize_parse(self, content: str) -> NormalizedResponse[ParseResult]:
        """
        Normalize Stage 2 output into a job-related ParseResult.

        Stage 2 only runs after a positive Stage 1 gate, so the result is
        always job-related; unrecoverable fields are left None.
        """
        data, method, warnings = self._recover(content, "stage2")
        if data is None:
            return self._conservative("stage2", warnings)

        company = self.stage4.repair_company(data.get("company"))
        position = self.stage4.repair_position(data.get("position"))
        status = self.stage4.repair_status(data.get("status"))
        for name, raw, repaired in (
            ("company", data.get("company"), company),
            ("position", data.get("position"), position),
            ("status", data.get("status"), getattr(status, "value", None)),
        ):
            if raw is not None and repaired is None:
                warnings.append(f"{name} discarded: {raw!r}")
            elif raw is not None and repaired != raw:
                warnings.append(f"{name} repaired: {raw!r} -> {repaired!r}")

        missing = sum(value is None for value in (company, position, status))
        derived = max(MIN_DERIVED_CONFIDENCE, METHOD_CONFIDENCE[method] - MISSING_FIELD_PENALTY * missing)
        confidence = self.stage4.repair_confidence(data.get("confidence"), default=derived)

        result = ParseResult(
            is_job_related=True,
            company=company,
            position=position,
            status=status,
            confidence=confidence,
            decision_path="two_stage",
        )
        return self._done("stage2", result, method, warnings)

    def normalize_match(self, content: str) -> NormalizedResponse[bool]:
        """Normalize same-job check output into a bool."""
        data, method, warnings = self._recover(content, "match")
        if data is None:
            return self._conservative("match", warnings)
        same_job = self.stage4.repair_bool(data.get("same_job"))
        if same_job is None:
            warnings.append(f"same_job not a boolean: {data.get('same_job')!r}")
            return self._conservative("match", warnings)
        return self._done("match", same_job, method, warnings)

    def _recover(
        self, content: str, stage: str
    ) -> tuple[Optional[dict[str, Any]], NormalizationMethod, list[str]]:
        """Run Stages 1-3; return (data, method, warnings) or (None, CONSERVATIVE, warnings)."""
        warnings: list[str] = []
        try:
            data, repaired = self.stage1.validate(content)
        except JSONParseError as e:
            warnings.append(f"JSON parse failed: {e.message}")
            try:
                data = self.stage3.extract(content, _STAGE_FIELDS[stage])
            except MalformedOutputError as extract_error:
                warnings.append(extract_error.message)
                return None, NormalizationMethod.CONSERVATIVE, warnings
            return data, NormalizationMethod.REGEX, warnings

        try:
            self.schema_validators[stage].validate(data)
        except SchemaValidationError as e:
            warnings.extend(e.details.get("validation_errors", [e.message]))

        method = NormalizationMethod.REPAIRED if repaired else NormalizationMethod.STRICT
        if repaired:
            warnings.append("JSON required repair")
        return data, method, warnings

    def _done(self, stage: str, result: T, method: NormalizationMethod, warnings: list[str]) -> NormalizedResponse[T]:
        normalization_total.labels(stage=stage, method=method.value).inc()
        if warnings:
            logger.info("Normalized with warnings", stage=stage, method=method.value, warnings=warnings)
        return NormalizedResponse(result=result, method=method, warnings=warnings)

    def _conservative(self, stage: str, warnings: list[str]) -> NormalizedResponse:
        normalization_total.labels(stage=stage, method=NormalizationMethod.CONSERVATIVE.value).inc()
        logger.warning("Nothing recoverable from model output", stage=stage, warnings=warnings)
        return NormalizedResponse(result=None, method=NormalizationMethod.CONSERVATIVE, warnings=warnings)
