"""Structural repair for JSON cut off mid-document.

When the backend hits its output ceiling it stops wherever it is: inside a
string, after a comma, between a key and its value.  ``repair_truncated_json``
closes whatever is still open and trims the tail back to the last complete
element.  It never guesses at text that is malformed rather than merely cut
short (mismatched or surplus closers).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}
# A bare literal or number cut short, e.g. ``tru`` or ``12.``
_BARE_TAIL = re.compile(r"[A-Za-z0-9.+\-]+$")
_PARTIAL_UNICODE = re.compile(r"\\u[0-9a-fA-F]{0,3}")


def repair_truncated_json(text: str) -> Any | None:
    """Close a truncated JSON document and parse it.

    Returns the parsed value, or None when the text cannot be repaired.
    Already-valid JSON parses to the same value ``json.loads`` gives.
    """
    if not text or not text.strip():
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    stack: list[str] = []
    in_string = False
    escaped = False
    escape_at = -1

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
                escape_at = i
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                logger.debug("Unbalanced %r in JSON text, not repairable", ch)
                return None
            stack.pop()

    body = text
    if in_string:
        if escaped:
            # A lone trailing backslash would escape the synthesized quote.
            body = body[:-1]
        elif escape_at >= 0 and _PARTIAL_UNICODE.fullmatch(text, escape_at):
            # \uXXXX cut before its fourth hex digit.
            body = body[:escape_at]
        body += '"'

    in_object = bool(stack) and stack[-1] == "}"
    closers = "".join(reversed(stack))

    body = _trim_dangling(body, in_object)
    value = _try_parse(body + closers)
    if value is not None:
        return value

    # Last resort: drop a half-written bare literal and trim again.
    stripped = _BARE_TAIL.sub("", body.rstrip())
    if stripped != body.rstrip():
        return _try_parse(_trim_dangling(stripped, in_object) + closers)
    return None


def _try_parse(candidate: str) -> Any | None:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None


def _trim_dangling(body: str, in_object: bool) -> str:
    """Trim trailing commas, colons and keys that have no value yet."""
    while True:
        body = body.rstrip()
        if body.endswith(","):
            body = body[:-1]
            continue
        if body.endswith(":"):
            body = body[:-1].rstrip()
            start = _string_start(body)
            if start is not None:
                body = body[:start]
            continue
        if in_object and body.endswith('"'):
            start = _string_start(body)
            if start is not None and body[:start].rstrip()[-1:] in ("{", ","):
                # A key with no colon after it.
                body = body[:start]
                continue
        return body


def _string_start(body: str) -> int | None:
    """Index of the opening quote of the string that ends ``body``."""
    if not body.endswith('"'):
        return None
    i = len(body) - 2
    while i >= 0:
        if body[i] == '"':
            backslashes = 0
            j = i - 1
            while j >= 0 and body[j] == "\\":
                backslashes += 1
                j -= 1
            if backslashes % 2 == 0:
                return i
        i -= 1
    return None
