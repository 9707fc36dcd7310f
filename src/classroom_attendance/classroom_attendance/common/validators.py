from __future__ import annotations

from typing import Optional

from ..core.exceptions import InvalidInput


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not value.strip():
        raise InvalidInput(f"{field_name} must not be empty")
    return value.strip()


def require_int_range(value, field_name: str, lo: int, hi: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be an integer")
    if number < lo or number > hi:
        raise InvalidInput(f"{field_name} must be between {lo} and {hi}")
    return number


def optional_float(value, field_name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} must be a number")
