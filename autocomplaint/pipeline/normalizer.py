"""Text normalizer — collapses scraped DOM text into a single clean line.

Rules are applied repeatedly until the text stops changing, then the result is
truncated on a whitespace boundary and cleaned again when the cut splits a
token. That makes ``normalize`` idempotent.
"""

from __future__ import annotations

import re

from autocomplaint.pipeline.errors import require_text

DEFAULT_MAX_LENGTH = 8000

_WHITESPACE = re.compile(r"[\s\x00-\x1f\x7f-\x9f]+")
# Zero-width spaces, joiners and the byte-order mark.
_INVISIBLE = re.compile(r"[\u200b-\u200d\u2060\ufeff]")
_EMPTY_BRACKETS = re.compile(r"\(\s*\)|\[\s*\]|\{\s*\}")
_REPEATED_PUNCTUATION = re.compile(r"([.,;:!?])[.,;:!?]+")
_REPEATED_DASHES = re.compile(r"-{2,}")
_SPACE_BEFORE_PUNCTUATION = re.compile(r"\s+([.,;:!?])")
# Whitespace-delimited single letters only; digits and currency symbols survive.
_ISOLATED_LETTER = re.compile(r"(?<!\S)[A-Za-z](?!\S)")

_RULES: list[tuple[re.Pattern[str], str]] = [
    (_INVISIBLE, ""),
    (_WHITESPACE, " "),
    (_EMPTY_BRACKETS, ""),
    (_REPEATED_PUNCTUATION, r"\1"),
    (_REPEATED_DASHES, "-"),
    (_ISOLATED_LETTER, ""),
    (_SPACE_BEFORE_PUNCTUATION, r"\1"),
    (_WHITESPACE, " "),
]


def _clean_pass(text: str) -> str:
    for pattern, replacement in _RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def _clean(text: str) -> str:
    # Rules only shorten the text or turn whitespace into plain spaces.
    while True:
        cleaned = _clean_pass(text)
        if cleaned == text:
            return text
        text = cleaned


def truncate(text: str, max_length: int) -> str:
    """Cut ``text`` to at most ``max_length`` characters without splitting a token."""
    if len(text) <= max_length:
        return text
    head = text[: max_length + 1]
    cut = head.rfind(" ")
    if cut <= 0:
        return text[:max_length]
    return head[:cut].rstrip()


def normalize(raw_text: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Normalize scraped page text.

    Args:
        raw_text: Text as scraped from the page (may be empty).
        max_length: Upper bound on the returned length.

    Returns:
        The cleaned text, possibly empty.

    Raises:
        InputError: if ``raw_text`` is not a string.
    """
    text = _clean(require_text(raw_text, "raw_text"))
    cut = truncate(text, max_length)
    if cut == text:
        return text
    # A mid-token cut can leave a stray letter behind.
    return _clean(cut)
