"""
String similarity for duplicate detection and conflict analysis.

advanced_similarity blends three signals over normalized strings:
    0.4 * normalized Levenshtein + 0.3 * character-set Jaccard + 0.3 * token overlap
Token overlap only counts tokens longer than 2 characters.
"""

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

from jobmail_inference.models.enums import JobStatus

LEVENSHTEIN_WEIGHT = 0.4
CHARSET_WEIGHT = 0.3
TOKEN_WEIGHT = 0.3
MIN_TOKEN_LENGTH = 3

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]")
_LEGAL_WORDS = re.compile(r"\b(?:inc|llc|corp|corporation|ltd|limited|company|co|gmbh|plc)\b")
_SENIORITY = re.compile(r"\b(?:sr|jr|senior|junior|lead|principal|staff)\b")
_ROMAN = re.compile(r"\b(?:i{1,3}|iv|v|vi{1,3}|ix|x)\b")
_NUMBERS = re.compile(r"\b\d+\b")


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def normalize_text(value: Optional[str]) -> str:
    """Lowercase, strip punctuation and legal-entity words, collapse whitespace."""
    text = _collapse((value or "").lower())
    text = _NON_WORD.sub("", text)
    text = _LEGAL_WORDS.sub("", text)
    return _collapse(text)


def normalize_job_title(value: Optional[str]) -> str:
    """normalize_text plus seniority words, roman numerals and bare numbers removed."""
    text = _collapse((value or "").lower())
    text = _SENIORITY.sub("", text)
    text = _ROMAN.sub("", text)
    text = _NUMBERS.sub("", text)
    text = _NON_WORD.sub("", text)
    return _collapse(text)


def levenshtein_similarity(a: str, b: str) -> float:
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def charset_jaccard(a: str, b: str) -> float:
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    return len(set_a & set_b) / len(union) if union else 0.0


def token_overlap(a: str, b: str) -> float:
    tokens_a = {t for t in a.split(" ") if len(t) >= MIN_TOKEN_LENGTH}
    tokens_b = {t for t in b.split(" ") if len(t) >= MIN_TOKEN_LENGTH}
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def advanced_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Weighted similarity in [0, 1]; 0 when either side is empty."""
    if not a or not b:
        return 0.0
    norm_a, norm_b = normalize_text(a), normalize_text(b)
    if norm_a == norm_b:
        return 1.0
    score = (
        LEVENSHTEIN_WEIGHT * levenshtein_similarity(norm_a, norm_b)
        + CHARSET_WEIGHT * charset_jaccard(norm_a, norm_b)
        + TOKEN_WEIGHT * token_overlap(norm_a, norm_b)
    )
    return min(1.0, max(0.0, score))


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    """advanced_similarity over seniority-stripped titles."""
    if not a or not b:
        return 0.0
    norm_a, norm_b = normalize_job_title(a), normalize_job_title(b)
    if not norm_a or not norm_b:
        return advanced_similarity(a, b)
    return advanced_similarity(norm_a, norm_b)


def semantic_similarity(
    company_a: Optional[str],
    position_a: Optional[str],
    status_a: Optional[JobStatus],
    company_b: Optional[str],
    position_b: Optional[str],
    status_b: Optional[JobStatus],
) -> float:
    """
    Agreement between two extractions, weighted company 0.4, position 0.4, status 0.2.

    Only fields present on both sides count; the score is renormalized over them.
    """
    score = 0.0
    weight = 0.0
    if company_a and company_b:
        score += 0.4 * advanced_similarity(company_a, company_b)
        weight += 0.4
    if position_a and position_b:
        score += 0.4 * advanced_similarity(position_a, position_b)
        weight += 0.4
    if status_a and status_b:
        score += 0.2 * (1.0 if status_a == status_b else 0.0)
        weight += 0.2
    return score / weight if weight else 0.0
