"""
Content-addressed cache keys.

Two emails that differ only in subject case, reply/forward prefixes or
whitespace, or in body text past the prefix window, hash to the same key.
"""

import hashlib
import re
from typing import Any, Optional

DEFAULT_BODY_PREFIX_CHARS = 500

_REPLY_PREFIX = re.compile(r"^\s*(?:(?:re|fwd?|aw|sv)\s*(?:\[\d+\])?\s*:\s*)+", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_FIELD_SEPARATOR = "\x1f"


def normalize_subject(subject: Optional[str]) -> str:
    """Lowercase, collapse whitespace, drop leading ``re:``/``fwd:`` chains."""
    text = _WHITESPACE.sub(" ", (subject or "").lower()).strip()
    return _REPLY_PREFIX.sub("", text).strip()


def sender_domain(sender: Optional[str]) -> str:
    """Domain part of an address or From header, lowercased; empty if none."""
    if not sender or "@" not in sender:
        return ""
    return sender.rsplit("@", 1)[1].strip().strip(">").lower()


def content_key(
    sender: Optional[str],
    subject: Optional[str],
    body: Optional[str],
    variant: str = "",
    body_prefix_chars: int = DEFAULT_BODY_PREFIX_CHARS,
) -> str:
    """
    Cache key for an email.

    Args:
        sender: From address or header (domain is all that is used)
        subject: Subject line
        body: Plain-text body (only the first ``body_prefix_chars`` count)
        variant: Namespace / record-source context mixed into the key
        body_prefix_chars: Body prefix length

    Returns:
        sha256 hex digest
    """
    parts = (
        sender_domain(sender),
        normalize_subject(subject),
        (body or "")[:body_prefix_chars],
        variant,
    )
    return hashlib.sha256(_FIELD_SEPARATOR.join(parts).encode("utf-8")).hexdigest()


def record_key(*parts: Any) -> str:
    """Deterministic key for record-level namespaces (manual record, conflict, duplicate)."""
    normalized = [_WHITESPACE.sub(" ", str(p if p is not None else "")).strip().lower() for p in parts]
    return hashlib.sha256(_FIELD_SEPARATOR.join(normalized).encode("utf-8")).hexdigest()
