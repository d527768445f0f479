"""
Text preparation utilities for prompts.

Emails are truncated before they reach the engine: Stage 1 keeps only a
prefix, Stage 2 keeps a prefix plus a short tail so signatures and footers
(where company names often live) survive.
"""

import re

HEAD_TAIL_SEPARATOR = "\n...\n"

_WHITESPACE_RUN = re.compile(r"[ \t\f\v]+")
_BLANK_LINES = re.compile(r"\n{3,}")


def compact_whitespace(text: str) -> str:
    """Collapse runs of spaces and blank lines; keep single newlines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _WHITESPACE_RUN.sub(" ", text)
    return _BLANK_LINES.sub("\n\n", text).strip()


def truncate_at_sentence_boundary(text: str, max_chars: int) -> str:
    """
    Truncate text at the nearest sentence boundary before max_chars.

    Falls back to the last word boundary if it is past 80% of the limit,
    else hard-cuts.

    Examples:
        >>> truncate_at_sentence_boundary("Hello. World. Test.", 15)
        'Hello. World.'
    """
    if len(text) <= max_chars:
        return text

    segment = text[:max_chars]
    matches = list(re.finditer(r"[.!?](?:\s|$)", segment))
    if matches:
        cutoff = matches[-1].end()
        if segment[cutoff - 1:cutoff].isspace():
            cutoff -= 1
        return text[:cutoff]

    last_space = segment.rfind(" ")
    if last_space > max_chars * 0.8:
        return text[:last_space]
    return segment


def truncate_head_tail(text: str, max_chars: int, tail_chars: int) -> str:
    """
    Keep a high-priority prefix and a smaller suffix of ``text``.

    The result never exceeds ``max_chars`` (separator included). When the
    tail budget leaves no room for a head, plain prefix truncation is used.

    Examples:
        >>> truncate_head_tail("a" * 10 + "b" * 10, 15, 5)
        'aaaaa\\n...\\nbbbbb'
    """
    if len(text) <= max_chars:
        return text

    head_chars = max_chars - tail_chars - len(HEAD_TAIL_SEPARATOR)
    if tail_chars <= 0 or head_chars <= 0:
        return text[:max_chars]

    return text[:head_chars].rstrip() + HEAD_TAIL_SEPARATOR + text[-tail_chars:].lstrip()
