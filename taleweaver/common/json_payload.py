"""
Helpers for extracting strict JSON objects from LLM replies.
"""

from __future__ import annotations

import json
import re
from typing import Any

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def parse_json_payload(text: str) -> dict[str, Any]:
    """
    Parse ``text`` as a JSON object.

    The reply is first parsed as-is. When that fails, the first fenced code block
    (```json ... ``` or ``` ... ```) is extracted and parsed instead.

    Raises
    ------
    ValueError
        If neither the raw text nor a fenced block holds a JSON object.
    """
    stripped = (text or "").strip()
    if not stripped:
        raise ValueError("LLM response was empty.")

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as exc:
        match = _FENCED_BLOCK.search(stripped)
        if match is None:
            raise ValueError("LLM response is not valid JSON and has no fenced JSON block.") from exc
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError as inner:
            raise ValueError("Fenced block in LLM response is not valid JSON.") from inner

    if not isinstance(data, dict):
        raise ValueError("LLM response JSON must be an object.")
    return data
