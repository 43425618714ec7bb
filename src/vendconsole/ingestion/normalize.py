"""Normalization helpers for batch file fields.

Centralizes defensive parsing so a single bad cell never aborts a batch.
"""

from __future__ import annotations

import math
from typing import Any


def clean_field(value: str | None) -> str:
    """Trim a raw cell and drop every double quote."""
    if value is None:
        return ""
    return value.strip().replace('"', "")


def safe_float(value: Any) -> float | None:
    if value is None or value == "":
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


def non_negative_or_zero(value: Any) -> int:
    parsed = safe_int(value)
    if parsed is None or parsed < 0:
        return 0
    return parsed


def cell(columns: list[str], index: int | None) -> str:
    """Return the cleaned cell at *index*, or ``""`` for short rows."""
    if index is None or index >= len(columns):
        return ""
    return clean_field(columns[index])
