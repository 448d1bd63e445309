"""Normalization helpers.

Centralizes lenient parsing of record fields and broker payloads.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

_LINE_SPLIT = re.compile(r"\r?\n")


def safe_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == "" or value == "--":
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def unquote(value: str) -> str:
    """Strip one pair of surrounding double quotes, if present."""
    text = value.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text


def decode_text(payload: bytes | str) -> str:
    """Decode a broker payload as UTF-8 text (invalid bytes replaced)."""
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def decode_json(payload: bytes | str) -> Any:
    """Decode a JSON broker payload.

    Raises :class:`ValueError` for empty or malformed payloads.
    """
    text = decode_text(payload).strip()
    if not text:
        raise ValueError("empty payload")
    return json.loads(text)


def split_records(payload: bytes | str) -> list[str]:
    """Split a delimited records payload into non-empty lines."""
    return [line for line in _LINE_SPLIT.split(decode_text(payload)) if line.strip()]
