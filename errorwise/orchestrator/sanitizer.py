"""Input Sanitizer — orchestrator step 1.

Bounds and cleans the raw, untrusted error text before anything else sees it:
  - Rejects non-string / empty input
  - Trims and truncates to the configured maximum (truncation is not an error)
  - Strips script blocks, ``javascript:`` URIs and inline event handlers
  - Rejects text that is too short to analyze after cleaning

This is a best-effort markup filter, not an HTML sanitizer.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from errorwise.core.exceptions import InputTooShortError, InvalidInputError

logger = logging.getLogger(__name__)

MAX_INPUT_CHARS = 8000
MIN_INPUT_CHARS = 10

# ---------------------------------------------------------------------------
# Injection patterns
# ---------------------------------------------------------------------------
_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
# Unterminated <script ...> opening tags left after truncation
_SCRIPT_OPEN_TAG = re.compile(r"<script\b[^>]*>?", re.IGNORECASE)
_JAVASCRIPT_URI = re.compile(r"javascript\s*:", re.IGNORECASE)
# Handler attributes inside a tag only; plain code such as `online = True` is left alone
_EVENT_HANDLER = re.compile(r"""(<[a-z][^>]*?)\s+on\w+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)

_INJECTION_PATTERNS = (_SCRIPT_BLOCK, _SCRIPT_OPEN_TAG, _JAVASCRIPT_URI)


def sanitize(
    text: Any,
    max_chars: int = MAX_INPUT_CHARS,
    min_chars: int = MIN_INPUT_CHARS,
) -> str:
    """Return the cleaned text or raise a typed input error.

    Args:
        text: Raw error description from the caller.
        max_chars: Characters kept after trimming; the remainder is discarded.
        min_chars: Minimum characters that must survive cleaning.

    Raises:
        InvalidInputError: ``text`` is not a string or is empty.
        InputTooShortError: fewer than ``min_chars`` remain after cleaning.
    """
    if not isinstance(text, str):
        raise InvalidInputError("Invalid error message: must be a non-empty string")

    cleaned = text.strip()
    if not cleaned:
        raise InvalidInputError("Invalid error message: must be a non-empty string")

    if len(cleaned) > max_chars:
        logger.info("Input truncated from %d to %d chars", len(cleaned), max_chars)
        cleaned = cleaned[:max_chars]

    for pattern in _INJECTION_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    removed = 1
    while removed:
        cleaned, removed = _EVENT_HANDLER.subn(r"\1", cleaned)
    cleaned = cleaned.strip()

    if len(cleaned) < min_chars:
        raise InputTooShortError(length=len(cleaned), minimum=min_chars)

    return cleaned


def normalize_for_fingerprint(text: str) -> str:
    """Collapse whitespace and case-fold so trivially different inputs share a cache key."""
    return " ".join(text.split()).casefold()
