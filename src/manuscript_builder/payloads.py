"""Best-effort decoding of structured payloads returned by external services."""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OPENERS = {"{": "}", "[": "]"}


def extract_json_block(text: Optional[str]) -> Optional[Any]:
    """Return the first decodable JSON value embedded in ``text``.

    Tries the whole payload, then fenced code blocks, then the first balanced
    object or array. Returns ``None`` when nothing decodes.
    """
    if not text or not text.strip():
        return None
    candidates = [text.strip()]
    candidates.extend(match.group(1).strip() for match in _FENCED_BLOCK.finditer(text))
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except ValueError:
            continue

    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char not in _OPENERS:
            continue
        try:
            value, _ = decoder.raw_decode(text, index)
        except ValueError:
            continue
        return value
    return None


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Like :func:`extract_json_block` but always returns a dict (possibly empty)."""
    value = extract_json_block(text)
    return value if isinstance(value, dict) else {}


def extract_records(text: Optional[str], key: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return a list of dict records from a payload, or an empty list.

    ``key`` selects a list nested in an object payload (``{"items": [...]}``).
    """
    value = extract_json_block(text)
    if isinstance(value, dict) and key:
        value = value.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


__all__ = ["extract_json_block", "extract_json_object", "extract_records"]
