"""Pull a JSON value out of free-form LLM output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from specforge.parsing.json_repair import repair_truncated_json

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```$")


def extract_json(text: str) -> Any | None:
    """Return the JSON value carried by ``text``, or None.

    Tries, in order: the whole text, the text inside a markdown code fence,
    the span from the first ``{`` to the last ``}``, and finally structural
    repair of everything from the first ``{`` on (truncated output).
    """
    if not text:
        return None
    cleaned = text.strip()

    value = _loads(cleaned)
    if value is not None:
        return value

    unfenced = strip_code_fence(cleaned)
    if unfenced != cleaned:
        value = _loads(unfenced)
        if value is not None:
            logger.debug("Parsed JSON after stripping code fence")
            return value

    start = cleaned.find("{")
    if start == -1:
        return None

    end = cleaned.rfind("}")
    if end > start:
        value = _loads(cleaned[start:end + 1])
        if value is not None:
            logger.debug("Parsed JSON embedded at offset %d", start)
            return value

    value = repair_truncated_json(cleaned[start:])
    if value is not None:
        logger.info("Recovered truncated JSON (%d chars)", len(cleaned) - start)
    return value


def strip_code_fence(text: str) -> str:
    """Remove one leading/trailing markdown fence pair, if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def _loads(text: str) -> Any | None:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None
