# app/api/v1/params.py
"""Parsing helpers for loosely typed request fields (numbers may arrive as strings)."""
from typing import Optional, Union

from app.core.errors import InvalidInput


def _to_int(value: Union[int, str, None]) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def require_positive_int(value: Union[int, str, None], field: str, message: Optional[str] = None) -> int:
    """Required numeric field; 400 when missing, non-numeric or not positive."""
    parsed = _to_int(value)
    if parsed is None or parsed <= 0:
        raise InvalidInput(message or f"{field} is required and must be a positive number")
    return parsed


def int_or_default(value: Union[int, str, None], default: int) -> int:
    """Optional numeric field; anything unusable (missing, garbage, <= 0) becomes `default`."""
    parsed = _to_int(value)
    if parsed is None or parsed <= 0:
        return default
    return parsed


def clean_text(value: Optional[str]) -> Optional[str]:
    """Stripped text, or None when missing / blank."""
    if value is None:
        return None
    value = value.strip()
    return value or None
