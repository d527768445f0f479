"""
Rule-based fallback classifier.

Used whenever the model path cannot produce a result: deadline exceeded,
session construction failed, output unrecoverable, or the inference gate
is full. Pure CPU work over precompiled regexes; no I/O, no awaits.

Rule order (first match wins):
1. ATS sender domain or Indeed application confirmation -> job-related (0.85)
2. Rejection / interview / offer phrasing -> job-related (0.8)
3. Job-board alert, newsletter or talent-community signal -> not job-related (0.85)
4. Application-confirmation phrasing -> job-related (0.7)
5. Job vs marketing keyword count: clear job majority -> job-related (0.6),
   anything else -> not job-related (0.55)
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from jobmail_inference.fallback import patterns
from jobmail_inference.fallback.indeed import extract_indeed_fields, is_indeed_application
from jobmail_inference.models.enums import JobStatus
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.output_models import ParseResult
from jobmail_inference.monitoring.metrics import fallback_total
from jobmail_inference.validation.stage4_field_repair import Stage4FieldRepair

logger = structlog.get_logger(__name__)

ATS_CONFIDENCE = 0.85
KEYWORD_FAMILY_CONFIDENCE = 0.8
NOT_JOB_SIGNAL_CONFIDENCE = 0.85
CONFIRMATION_CONFIDENCE = 0.7
KEYWORD_MAJORITY_CONFIDENCE = 0.6
AMBIGUOUS_CONFIDENCE = 0.55

MIN_JOB_KEYWORDS = 2

# Sender domains that never name the hiring company
_NON_COMPANY_DOMAINS = patterns.ATS.domains + patterns.JOB_BOARD.domains


@dataclass(frozen=True)
class FallbackDecision:
    """Which rule fired and what it concluded."""

    is_job_related: bool
    confidence: float
    rule: str


class FallbackClassifier:
    """
    Deterministic email classifier with field extraction.

    Stateless; safe to share between concurrent requests.
    """

    def __init__(self):
        self.field_repair = Stage4FieldRepair()

    def classify(self, email: EmailMessage, reason: str = "inference_error") -> ParseResult:
        """
        Classify ``email`` without the model.

        Args:
            email: Email to classify
            reason: Why the model path was skipped (becomes ``fallback:<reason>``)

        Returns:
            ParseResult; fields populated only when job-related
        """
        fallback_total.labels(reason=reason).inc()
        decision = self.decide(email)
        decision_path = f"fallback:{reason}"

        logger.info(
            "Fallback classification",
            reason=reason,
            rule=decision.rule,
            is_job_related=decision.is_job_related,
        )

        if not decision.is_job_related:
            return ParseResult.not_job_related(confidence=decision.confidence, decision_path=decision_path)

        company, position, status = self.extract_fields(email)
        return ParseResult(
            is_job_related=True,
            company=company,
            position=position,
            status=status,
            confidence=decision.confidence,
            decision_path=decision_path,
        )

    def decide(self, email: EmailMessage) -> FallbackDecision:
        if patterns.ATS.matches_sender(email) or is_indeed_application(email):
            return FallbackDecision(True, ATS_CONFIDENCE, "ats")

        for family in (patterns.REJECTION, patterns.INTERVIEW, patterns.OFFER):
            if family.matches_text(email):
                return FallbackDecision(True, KEYWORD_FAMILY_CONFIDENCE, family.name)

        if patterns.JOB_BOARD.matches_sender(email) or patterns.JOB_BOARD.matches_text(email):
            return FallbackDecision(False, NOT_JOB_SIGNAL_CONFIDENCE, patterns.JOB_BOARD.name)
        for family in (patterns.NEWSLETTER, patterns.TALENT_COMMUNITY):
            if family.matches_text(email):
                return FallbackDecision(False, NOT_JOB_SIGNAL_CONFIDENCE, family.name)

        if patterns.APPLICATION_CONFIRMATION.matches_text(email):
            return FallbackDecision(True, CONFIRMATION_CONFIDENCE, patterns.APPLICATION_CONFIRMATION.name)

        text = f"{email.subject} {email.body}"
        job_hits = patterns.count_keywords(text, patterns.JOB_KEYWORDS)
        marketing_hits = patterns.count_keywords(text, patterns.MARKETING_KEYWORDS)
        if job_hits >= MIN_JOB_KEYWORDS and job_hits > 2 * marketing_hits:
            return FallbackDecision(True, KEYWORD_MAJORITY_CONFIDENCE, "keyword_majority")
        return FallbackDecision(False, AMBIGUOUS_CONFIDENCE, "ambiguous")

    def extract_fields(self, email: EmailMessage) -> tuple[Optional[str], Optional[str], JobStatus]:
        """
        Pull company, position and status with the rule patterns.

        Runs independently of the classification decision. Values pass
        through the same field repair as model output.

        Returns:
            Tuple of (company, position, status); status defaults to Applied
        """
        company = position = None
        status: Optional[JobStatus] = None
        if is_indeed_application(email):
            company, position, status = extract_indeed_fields(email)

        if company is None:
            company = (
                patterns.company_from_domain(email.sender_domain, skip=_NON_COMPANY_DOMAINS)
                or patterns.first_group(patterns.COMPANY_SUBJECT_PATTERNS, email.subject, 2, 50)
                or patterns.first_group(patterns.COMPANY_BODY_PATTERNS, email.body, 2, 50)
            )
        if position is None:
            position = (
                patterns.first_group(patterns.POSITION_SUBJECT_PATTERNS, email.subject, 3, 100)
                or patterns.first_group(patterns.POSITION_BODY_PATTERNS, email.body, 3, 100)
            )
        if status is None:
            status = self.status_hint(email) or JobStatus.APPLIED

        return (
            self.field_repair.repair_company(company),
            self.field_repair.repair_position(position),
            status,
        )

    def status_hint(self, email: EmailMessage) -> Optional[JobStatus]:
        """Status suggested by keyword families (Offer > Declined > Interview > Applied), or None."""
        text = f"{email.subject}\n{email.body}"
        for status, status_patterns in patterns.STATUS_PATTERNS:
            if any(p.search(text) for p in status_patterns):
                return status
        return None
