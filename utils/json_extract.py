"""
Tolerant extraction of JSON objects from model output.

Models wrap JSON in prose or code fences and sometimes stop mid-object. Two tiers:

1. ``extract_json_object`` finds the first balanced ``{...}`` block that parses as a
   JSON object.
2. ``extract_int_field`` pulls a single integer field out with a regex, for output that
   was cut off before the object closed.
"""

import json
import re
from collections.abc import Iterator
from typing import Any

from models.errors import ParseError


def _balanced_end(text: str, start: int) -> int | None:
    """Index of the brace closing the one at ``start``; braces inside strings are ignored."""
    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return pos
    return None


def iter_balanced_objects(text: str) -> Iterator[str]:
    """Yield top-level balanced ``{...}`` substrings from left to right."""
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is None:
            return
        yield text[start : end + 1]
        start = text.find("{", end + 1)


def find_balanced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, or None."""
    return next(iter_balanced_objects(text), None)


def extract_json_object(text: str | None) -> dict[str, Any]:
    """
    Parse the first JSON object embedded in ``text``.

    Prose braces such as ``{like this}`` are skipped when they do not parse.

    Raises:
        ParseError: no balanced block parses as a JSON object
    """
    raw = text or ""
    last_error = "no JSON object found in model output"
    for block in iter_balanced_objects(raw):
        try:
            value = json.loads(block)
        except json.JSONDecodeError as e:
            last_error = f"invalid JSON in model output: {e.msg}"
            continue
        if isinstance(value, dict):
            return value
    raise ParseError(last_error, raw=raw)


def extract_int_field(text: str | None, field_name: str) -> int | None:
    """Find ``"field_name": <int>`` anywhere in ``text``; None when absent."""
    if not text:
        return None
    pattern = r'"' + re.escape(field_name) + r'"\s*:\s*"?(-?\d+)'
    match = re.search(pattern, text)
    if not match:
        return None
    return int(match.group(1))
