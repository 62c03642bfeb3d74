"""Defensive JSON extraction from free-form model output.

extract_json never raises: every failure path logs a diagnostic naming the
context and returns None, leaving the caller to decide what a missing
section means.
"""

from __future__ import annotations

import json
import logging
import re
from json import JSONDecodeError
from typing import Any

LOGGER = logging.getLogger(__name__)

_LEADING_FENCE_RE = re.compile(r"\A\s*```[\w-]*[ \t]*(?:\r?\n)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```\s*\Z")

# Balanced double- or single-quoted spans; escapes are consumed as pairs so an
# escaped quote never closes the span.
_STRING_SPAN_RE = re.compile(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'', re.DOTALL)
_ESCAPE_OR_NEWLINE_RE = re.compile(r"\\.|\r?\n", re.DOTALL)

# Short conversational replies are not worth a repair attempt.
_REFUSAL_MAX_LEN = 200
_REFUSAL_MARKERS: tuple[str, ...] = (
    "sorry",
    "error",
    "apologize",
    "i cannot",
    "i can't",
    "unable to",
    "as an ai",
)
_LOG_PREFIX_LEN = 500


def extract_json(raw: str | None, context: str) -> Any | None:
    """Parse one JSON value out of generated text, or return None."""
    if not isinstance(raw, str) or not raw.strip():
        LOGGER.warning("No raw text provided for %s", context)
        return None

    text = strip_code_fence(raw)

    if looks_like_refusal(text):
        LOGGER.warning(
            "Raw text for %s looks like plain text, not JSON: %r", context, text[:100]
        )
        return None

    try:
        return json.loads(text)
    except (JSONDecodeError, RecursionError) as initial_error:
        LOGGER.warning("Initial JSON parse failed for %s, attempting repair: %s", context, initial_error)

    repaired = escape_newlines_in_strings(text)
    if repaired == text:
        LOGGER.warning("Newline repair did not modify the text for %s", context)
    else:
        LOGGER.info("Retrying JSON parse after newline repair for %s", context)

    try:
        return json.loads(repaired)
    except (JSONDecodeError, RecursionError) as exc:
        LOGGER.error("JSON parse failed after repair for %s: %s", context, exc)
        LOGGER.error("Problematic text for %s: %s", context, text[:_LOG_PREFIX_LEN])
        return None


def strip_code_fence(raw: str) -> str:
    """Drop one leading and one trailing ``` marker line, then trim."""
    text = _LEADING_FENCE_RE.sub("", raw, count=1)
    text = _TRAILING_FENCE_RE.sub("", text, count=1)
    return text.strip()


def looks_like_refusal(text: str) -> bool:
    if text.startswith(("[", "{")) or len(text) >= _REFUSAL_MAX_LEN:
        return False
    lowered = text.lower()
    return any(marker in lowered for marker in _REFUSAL_MARKERS)


def escape_newlines_in_strings(text: str) -> str:
    """Escape raw line breaks inside quoted spans only.

    Existing escape sequences and everything outside a string span are
    returned byte-for-byte.
    """

    def _escape(match: re.Match[str]) -> str:
        return _ESCAPE_OR_NEWLINE_RE.sub(_replace_newline, match.group(0))

    return _STRING_SPAN_RE.sub(_escape, text)


def _replace_newline(match: re.Match[str]) -> str:
    token = match.group(0)
    return token if token.startswith("\\") else "\\n"
