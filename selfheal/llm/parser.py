from __future__ import annotations

import json
import logging
import re

log = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[A-Za-z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def clean_json_response(content: str) -> str:
    """Removes markdown code fences wrapped around a JSON payload."""

    cleaned = content.strip()
    cleaned = _FENCE_OPEN.sub("", cleaned)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def parse_locator_list(content: str | None) -> list[str]:
    """Extracts an ordered, de-duplicated list of candidate locator strings.

    Malformed or non-array responses yield an empty list.
    """

    if not content:
        return []
    cleaned = clean_json_response(content)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("["), cleaned.rfind("]")
        if start == -1 or end <= start:
            log.warning("Suggestion response is not a JSON array: %.200s", cleaned)
            return []
        try:
            payload = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            log.warning("Suggestion response could not be parsed: %.200s", cleaned)
            return []
    if not isinstance(payload, list):
        log.warning("Suggestion response is %s, expected a list", type(payload).__name__)
        return []
    candidates: list[str] = []
    for item in payload:
        if isinstance(item, str) and item.strip() and item.strip() not in candidates:
            candidates.append(item.strip())
    return candidates
