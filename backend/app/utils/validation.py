from __future__ import annotations
"""Reusable validation helpers for request payloads.

All helpers abort with 400 and a field-specific description so handlers can use them inline.
JSON booleans are rejected where a number is expected (``True`` is an int in Python).
"""
import math
from datetime import date
from typing import Any, Iterable, Optional
from flask import abort


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def _as_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or value is None:
        abort(400, description=f"{field_name} must be an integer")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            abort(400, description=f"{field_name} must be an integer")
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            abort(400, description=f"{field_name} must be an integer")
    abort(400, description=f"{field_name} must be an integer")


def non_negative_int(value: Any, field_name: str) -> int:
    n = _as_int(value, field_name)
    if n < 0:
        abort(400, description=f"{field_name} must be >= 0")
    return n


def positive_int(value: Any, field_name: str) -> int:
    n = _as_int(value, field_name)
    if n <= 0:
        abort(400, description=f"{field_name} must be > 0")
    return n


def optional_number(value: Any, field_name: str, minimum: float = 0) -> Optional[float]:
    """Finite number >= minimum, or None when absent/blank."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        abort(400, description=f"{field_name} must be a number")
    try:
        n = float(value)
    except (TypeError, ValueError):
        abort(400, description=f"{field_name} must be a number")
    if not math.isfinite(n) or n < minimum:
        abort(400, description=f"{field_name} must be a number >= {minimum:g}")
    return n


def optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or value == '':
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        abort(400, description=f"{field_name} must be YYYY-MM-DD")


def required_text(data: dict, field_name: str) -> str:
    val = data.get(field_name)
    if not isinstance(val, str) or not val.strip():
        abort(400, description=f"{field_name} required")
    return val.strip()


def round3(value: float) -> float:
    return round(float(value), 3)

__all__ = [
    'validate_status', 'non_negative_int', 'positive_int', 'optional_number',
    'optional_date', 'required_text', 'round3',
]
