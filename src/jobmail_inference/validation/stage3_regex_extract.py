"""
Stage 3: Regex key/value extraction.

Last structured recovery step before giving up: when no JSON object can be
parsed, look for ``key: value`` pairs for the known field names anywhere in
the text (quoted or bare values, JSON-ish or YAML-ish).
"""

import re
from typing import Any

import structlog

from .exceptions import MalformedOutputError

logger = structlog.get_logger(__name__)

# canonical field -> accepted spellings
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "is_job": ("is_job", "is_job_related", "isJobRelated", "job_related", "isJob"),
    "risk_level": ("risk_level", "riskLevel", "risk"),
    "company": ("company", "company_name", "companyName", "employer"),
    "position": ("position", "job_title", "jobTitle", "title", "role"),
    "status": ("status", "application_status", "applicationStatus"),
    "confidence": ("confidence", "score"),
    "same_job": ("same_job", "sameJob", "is_same_job"),
}

_VALUE = r"""\s*[:=]\s*(?:"((?:[^"\\]|\\.)*)"|'([^'\n]*)'|([^,}\n]+))"""


def _compile(alias: str) -> re.Pattern:
    return re.compile(r"""["']?\b""" + re.escape(alias) + r"""\b["']?""" + _VALUE, re.IGNORECASE)


_PATTERNS = {
    field: [_compile(alias) for alias in aliases] for field, aliases in FIELD_ALIASES.items()
}


def coerce_scalar(raw: str, quoted: bool) -> Any:
    """Turn a bare token into bool/None/float where it obviously is one."""
    value = raw.strip()
    if quoted:
        return value
    lowered = value.lower().rstrip(".")
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    if lowered in ("null", "none", "nil", "n/a", ""):
        return None
    try:
        return float(lowered)
    except ValueError:
        return value


class Stage3RegexExtraction:
    """
    Stage 3 normalizer: pull known fields out of free text.

    Raises MalformedOutputError when none of the requested fields is found.
    """

    def extract(self, content: str, fields: tuple[str, ...]) -> dict[str, Any]:
        """
        Args:
            content: Raw generated text
            fields: Canonical field names to look for

        Returns:
            Dict of canonical field name -> coerced value (only fields found)

        Raises:
            MalformedOutputError: Nothing recoverable
        """
        found: dict[str, Any] = {}
        for field in fields:
            for pattern in _PATTERNS[field]:
                match = pattern.search(content or "")
                if match is None:
                    continue
                double_quoted, single_quoted, bare = match.groups()
                if double_quoted is not None:
                    found[field] = coerce_scalar(double_quoted, quoted=True)
                elif single_quoted is not None:
                    found[field] = coerce_scalar(single_quoted, quoted=True)
                else:
                    found[field] = coerce_scalar(bare, quoted=False)
                break

        if not found:
            raise MalformedOutputError(
                "No known fields found in model output",
                details={"fields": list(fields), "content_snippet": (content or "")[:200]},
            )

        logger.debug("Stage 3: regex extraction recovered fields", fields=list(found))
        return found
