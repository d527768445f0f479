"""
Stage 1: JSON isolation and parse.

Small local models wrap JSON in markdown fences, chat-template tokens and
role prefixes, and emit Python literals or trailing commas. This stage
strips the wrappers, isolates the first balanced {...} span and parses it,
retrying once after a textual repair pass.
"""

import json
import re
from typing import Optional

import structlog

from .exceptions import JSONParseError

logger = structlog.get_logger(__name__)

_WRAPPER_PATTERNS = [
    re.compile(r"```(?:json|JSON)?"),
    re.compile(r"<\|[^|>]{1,40}\|>"),
    re.compile(r"\[/?INST\]|</?s>"),
    re.compile(r"^\s*(?:assistant|model|ai|output|response)\s*:\s*", re.IGNORECASE | re.MULTILINE),
]

_PY_LITERALS = [
    (re.compile(r"\bTrue\b"), "true"),
    (re.compile(r"\bFalse\b"), "false"),
    (re.compile(r"\bNone\b"), "null"),
]
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_SINGLE_QUOTED = re.compile(r"([{,:\[]\s*)'([^'\n]*)'")


def strip_wrappers(text: str) -> str:
    """Remove markdown fences, chat-template tokens and role prefixes."""
    for pattern in _WRAPPER_PATTERNS:
        text = pattern.sub("", text)
    return text.strip()


def extract_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced ``{...}`` span in ``text``.

    Braces inside double-quoted strings are ignored. Returns None when
    there is no opening brace or the object never closes (truncated output).
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def repair_json(candidate: str) -> str:
    """Best-effort textual repair of near-JSON."""
    repaired = candidate
    for pattern, replacement in _PY_LITERALS:
        repaired = pattern.sub(replacement, repaired)
    repaired = _SINGLE_QUOTED.sub(lambda m: m.group(1) + json.dumps(m.group(2)), repaired)
    repaired = _UNQUOTED_KEY.sub(r'\1"\2"\3', repaired)
    repaired = _TRAILING_COMMA.sub(r"\1", repaired)
    return repaired


class Stage1JSONParse:
    """
    Stage 1 normalizer: isolate and parse a JSON object.

    Raises JSONParseError when neither the strict nor the repaired parse works.
    """

    def validate(self, content: str) -> tuple[dict, bool]:
        """
        Parse the JSON object embedded in raw model output.

        Args:
            content: Raw generated text

        Returns:
            Tuple of (parsed dict, whether the repair pass was needed)

        Raises:
            JSONParseError: No parsable object found
        """
        if not content or not content.strip():
            raise JSONParseError("Model output is empty", raw_content=content, parse_error="Empty content")

        cleaned = strip_wrappers(content)
        candidate = extract_balanced_object(cleaned)
        if candidate is None:
            raise JSONParseError(
                "No balanced JSON object in model output",
                raw_content=content,
                parse_error="unbalanced or missing braces",
            )

        try:
            return self._load_object(candidate), False
        except (json.JSONDecodeError, JSONParseError) as first_error:
            repaired = repair_json(candidate)
            try:
                parsed = self._load_object(repaired)
            except json.JSONDecodeError as e:
                raise JSONParseError(
                    f"Failed to parse model output as JSON: {e.msg}",
                    raw_content=content,
                    parse_error=f"{e.msg} at line {e.lineno} col {e.colno}",
                ) from first_error
            logger.debug("Stage 1: parsed after repair", keys=list(parsed))
            return parsed, True

    @staticmethod
    def _load_object(text: str) -> dict:
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise JSONParseError(
                f"Model output is not a JSON object (got {type(parsed).__name__})",
                raw_content=text,
            )
        return parsed
