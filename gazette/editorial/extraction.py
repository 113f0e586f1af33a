"""Recover a JSON object from free-form model output.

Models wrap JSON in code fences, add trailing commas, leave raw newlines in
strings or stop mid-object when they hit the token limit. Each repair below is
a pure function that can be applied on its own; `extract_json` walks them in
order and stops at the first candidate that parses.
"""

import json
import logging
import re
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class ExtractionError(ValueError):
    """Model output could not be turned into a JSON object."""

    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.text = text


class NoStructuredDataError(ExtractionError):
    """Model output contains no brace-delimited span at all."""


_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_CONTROL_ESCAPES = {"\n": "\\n", "\t": "\\t", "\r": "\\r", "\b": "\\b", "\f": "\\f"}


# ============================================================================
# Locating the payload
# ============================================================================


class _StringTracker:
    """Follows a character stream in and out of JSON string literals."""

    def __init__(self):
        self.in_string = False
        self.escaped = False

    def feed(self, char: str) -> bool:
        """Advance one character; True when it belongs to a string literal."""
        if self.in_string:
            if self.escaped:
                self.escaped = False
            elif char == "\\":
                self.escaped = True
            elif char == '"':
                self.in_string = False
            return True
        if char == '"':
            self.in_string = True
            return True
        return False


def fenced_block(text: str) -> str | None:
    """Inner text of the first ``` or ```json block, if any."""
    match = _FENCE_RE.search(text)
    if match is None:
        return None
    return match.group(1).strip()


def brace_span(text: str) -> str:
    """First top-level {...} span; runs to the end of text if it never closes."""
    start = text.find("{")
    if start == -1:
        raise NoStructuredDataError("No JSON found in response", text)

    depth = 0
    tracker = _StringTracker()
    for pos in range(start, len(text)):
        char = text[pos]
        if tracker.feed(char):
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : pos + 1]

    return text[start:]


# ============================================================================
# Repairs
# ============================================================================


def strip_trailing_commas(text: str) -> str:
    """Drop commas directly before a closing bracket or brace (and any CR)."""
    return _TRAILING_COMMA_RE.sub(r"\1", text.replace("\r", ""))


def escape_control_chars(text: str) -> str:
    """Escape raw newlines/tabs that appear inside quoted strings."""
    out = []
    tracker = _StringTracker()
    for char in text:
        plain = tracker.in_string and not tracker.escaped
        tracker.feed(char)
        if plain and char in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[char])
        elif plain and ord(char) < 0x20:
            out.append(f"\\u{ord(char):04x}")
        else:
            out.append(char)
    return "".join(out)


def balance_braces(text: str) -> str:
    """Close a truncated object: finish an open string, add missing braces.

    Counts braces only, so a cut inside a nested array or object may close in
    the wrong place. Good enough for the flat id->text maps the stages use.
    """
    tracker = _StringTracker()
    depth = 0
    for char in text:
        if tracker.feed(char):
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1

    if depth <= 0 and not tracker.in_string:
        return text

    repaired = text if tracker.in_string else text.rstrip()
    if tracker.escaped:
        # cut right after a backslash
        repaired = repaired[:-1]
    if tracker.in_string:
        repaired += '"'
    repaired += "}" * max(depth, 0)
    return strip_trailing_commas(repaired)


# Each step transforms the output of the previous one
REPAIR_LADDER: list[tuple[str, Callable[[str], str]]] = [
    ("trailing_commas", strip_trailing_commas),
    ("control_chars", escape_control_chars),
    ("balance_braces", balance_braces),
]


# ============================================================================
# Public API
# ============================================================================


def _parse_object(candidate: str) -> dict[str, Any]:
    parsed = json.loads(candidate)
    if not isinstance(parsed, dict):
        raise ExtractionError(f"Expected a JSON object, got {type(parsed).__name__}", candidate)
    return parsed


def extract_json(text: str) -> dict[str, Any]:
    """Parse the structured object embedded in a model response.

    Raises:
        NoStructuredDataError: no '{' anywhere in the text
        ExtractionError: a span was found but no repair made it parse
    """
    if not text or "{" not in text:
        raise NoStructuredDataError("No JSON found in response", text or "")

    fenced = fenced_block(text)
    if fenced is not None and "{" in fenced:
        candidate = fenced
    else:
        candidate = brace_span(text)

    try:
        return _parse_object(candidate)
    except json.JSONDecodeError:
        pass

    if fenced is not None and "{" in fenced:
        # Fence contents may carry prose around the object
        candidate = brace_span(candidate)

    last_error: Exception | None = None
    for name, repair in REPAIR_LADDER:
        candidate = repair(candidate)
        try:
            parsed = _parse_object(candidate)
            logger.debug(f"Recovered JSON after repair step '{name}'")
            return parsed
        except json.JSONDecodeError as e:
            last_error = e

    raise ExtractionError(f"Failed to parse JSON: {last_error}", text)
