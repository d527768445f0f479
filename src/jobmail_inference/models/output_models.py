"""
Output data models for the classification pipeline.

ClassificationResult is the Stage 1 gate; ParseResult is what ``classify``
returns to callers, whichever tier produced it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from jobmail_inference.models.enums import JobStatus, RiskLevel


class ClassificationResult(BaseModel):
    """
    Stage 1 output: is this email about a job application?

    Terminal for the pipeline when ``is_job_related`` is False.
    """

    model_config = ConfigDict(extra="forbid")

    is_job_related: bool = Field(..., description="Stage 1 gate decision")
    risk_level: RiskLevel = Field(default=RiskLevel.NONE, description="Estimated risk of a wrong gate decision")


class ParseResult(BaseModel):
    """
    Final classification with extracted fields.

    Invariant: when ``is_job_related`` is False, company, position and status
    are all None. Enforced here so no tier can violate it.
    """

    model_config = ConfigDict(extra="forbid")

    is_job_related: bool = Field(..., description="Whether the email concerns a job application")
    company: Optional[str] = Field(default=None, description="Hiring company")
    position: Optional[str] = Field(default=None, description="Job title")
    status: Optional[JobStatus] = Field(default=None, description="Application status")
    confidence: float = Field(default=0.5, ge=0.0, le=1.0, description="Overall confidence")
    decision_path: str = Field(
        default="two_stage",
        description="Tier that produced the result: two_stage, stage1_negative, stage1_only, fallback:<reason>, conservative",
    )

    @model_validator(mode="after")
    def enforce_null_fields_when_not_job(self) -> "ParseResult":
        if not self.is_job_related:
            self.company = None
            self.position = None
            self.status = None
        return self

    @classmethod
    def not_job_related(cls, confidence: float = 0.5, decision_path: str = "stage1_negative") -> "ParseResult":
        return cls(is_job_related=False, confidence=confidence, decision_path=decision_path)

    @classmethod
    def conservative(cls) -> "ParseResult":
        """Last-resort result when every tier failed."""
        return cls(is_job_related=False, confidence=0.0, decision_path="conservative")
