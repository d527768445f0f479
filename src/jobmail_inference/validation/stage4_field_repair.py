"""
Stage 4: Field-level repair.

Cleans extracted strings and clamps enumerations. Each repair returns the
value to keep (possibly None) and never raises; the pipeline records a
warning whenever a value was changed or discarded.
"""

import math
import re
from typing import Any, Optional

from jobmail_inference.models.enums import JobStatus, RiskLevel

MIN_FIELD_LENGTH = 2
MAX_COMPANY_LENGTH = 60
MAX_COMPANY_WORDS = 6
MAX_POSITION_LENGTH = 100
MAX_POSITION_WORDS = 12
DEFAULT_CONFIDENCE = 0.5

_CORRUPTED_TOKENS = re.compile(r"<\|[^|>]*\|>|�|\\u[0-9a-fA-F]{4}|[\x00-\x08\x0b-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")
_EDGE_QUOTES = "\"'`“”‘’"
_EDGE_PUNCT = " .,;:-|*_"

_LEGAL_SUFFIX = re.compile(
    r",?\s+(?:inc\.?|incorporated|llc|l\.l\.c\.|corp\.?|corporation|ltd\.?|limited|co\.|gmbh|plc)$",
    re.IGNORECASE,
)
_JOB_CODE = re.compile(r"\b[A-Z]{0,4}[-_]?\d{4,}\b")
_REQ_REFERENCE = re.compile(
    r"[\(\[]?\s*(?:req(?:uisition)?|job)\s*(?:id|#|no\.?|number)\s*[:#]?\s*[\w-]+\s*[\)\]]?",
    re.IGNORECASE,
)
_EMPTY_BRACKETS = re.compile(r"[\(\[]\s*[\)\]]")

_PURE_NUMBER = re.compile(r"^[\d\W_]+$")
_CODE_LIKE = re.compile(r"^(?=.*\d)[A-Za-z0-9_-]{3,}$")

_GENERIC_WORDS = {
    "unknown", "n/a", "na", "none", "null", "nil", "tbd", "not specified", "not mentioned",
    "not provided", "unspecified", "company", "the company", "employer", "hiring team",
    "recruiting team", "talent team", "position", "the position", "job", "role", "title",
    "job title", "opening", "your application", "application", "us", "we",
}
_COMPANY_NOISE = ("application", "received", "thank", "@", "http", "www.")


def clean_text(value: Any) -> Optional[str]:
    """Strip quotes, corrupted tokens and extra whitespace; None if nothing left."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value)
    text = _CORRUPTED_TOKENS.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    text = text.strip(_EDGE_QUOTES).strip(_EDGE_PUNCT).strip(_EDGE_QUOTES).strip()
    return text or None


def is_placeholder(text: str) -> bool:
    """Pure numbers, code-like tokens and generic filler words."""
    lowered = text.lower()
    if lowered in _GENERIC_WORDS:
        return True
    if _PURE_NUMBER.match(text):
        return True
    if " " not in text and _CODE_LIKE.match(text) and sum(c.isdigit() for c in text) >= 3:
        return True
    return False


def normalize_status(value: Any) -> Optional[JobStatus]:
    """
    Map free-form status text onto the enum.

    Rejection wording is checked before offer wording so that
    "we cannot offer you the position" maps to Declined.
    """
    text = clean_text(value)
    if text is None:
        return None
    for status in JobStatus:
        if text.lower() == status.value.lower():
            return status

    lowered = text.lower()
    if re.search(r"reject|declin|not selected|not moving forward|unsuccessful|no longer|regret|(?:cannot|can.t|unable to) offer", lowered):
        return JobStatus.DECLINED
    if "offer" in lowered:
        return JobStatus.OFFER
    if re.search(r"interview|screen|onsite|on-site|assessment|schedul", lowered):
        return JobStatus.INTERVIEW
    if re.search(r"appl|submit|received|review|pending", lowered):
        return JobStatus.APPLIED
    return None


class Stage4FieldRepair:
    """Stage 4 normalizer: per-field clean-up."""

    def repair_company(self, value: Any) -> Optional[str]:
        text = clean_text(value)
        if text is None:
            return None
        text = _LEGAL_SUFFIX.sub("", text).strip(_EDGE_PUNCT)
        if len(text) < MIN_FIELD_LENGTH or len(text) > MAX_COMPANY_LENGTH:
            return None
        if len(text.split()) > MAX_COMPANY_WORDS:
            return None
        lowered = text.lower()
        if any(noise in lowered for noise in _COMPANY_NOISE):
            return None
        if is_placeholder(text):
            return None
        return text

    def repair_position(self, value: Any) -> Optional[str]:
        text = clean_text(value)
        if text is None:
            return None
        text = _REQ_REFERENCE.sub(" ", text)
        text = _JOB_CODE.sub(" ", text)
        text = _EMPTY_BRACKETS.sub(" ", text)
        text = _WHITESPACE.sub(" ", text).strip(_EDGE_PUNCT)
        if len(text) < MIN_FIELD_LENGTH or len(text) > MAX_POSITION_LENGTH:
            return None
        if len(text.split()) > MAX_POSITION_WORDS:
            return None
        if is_placeholder(text):
            return None
        return text

    def repair_status(self, value: Any) -> Optional[JobStatus]:
        return normalize_status(value)

    def repair_confidence(self, value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
        if isinstance(value, bool) or value is None:
            return default
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            return default
        if math.isnan(confidence):
            return default
        if confidence > 1.0 and confidence <= 100.0:
            confidence = confidence / 100.0  # percent scale
        return min(1.0, max(0.0, confidence))

    def repair_risk_level(self, value: Any) -> RiskLevel:
        text = clean_text(value)
        if text is None:
            return RiskLevel.NONE
        try:
            return RiskLevel(text.lower())
        except ValueError:
            return RiskLevel.MEDIUM

    def repair_bool(self, value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        text = clean_text(value)
        if text is None:
            return None
        lowered = text.lower()
        if lowered in ("true", "yes", "y", "1"):
            return True
        if lowered in ("false", "no", "n", "0"):
            return False
        return None
