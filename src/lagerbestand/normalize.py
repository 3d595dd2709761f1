"""Coercion helpers applied to every record before it reaches the store."""
from __future__ import annotations

import math
from typing import Any, Optional, Union

Number = Union[int, float]

# Largest magnitude at which every integral float is exactly representable.
_MAX_EXACT_INT = 2**53
# SQLite stores INTEGER as a signed 64-bit value.
_MAX_INT64 = 2**63 - 1


def coerce_number(value: Any, default: Number = 0) -> Number:
    """Convert *value* to a finite number, falling back to *default*.

    Numeric strings are parsed, ``None`` and blank strings yield *default*.
    Integral floats are returned as ``int`` so that ``10.0`` and ``10``
    serialize identically.
    """

    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        if abs(value) <= _MAX_EXACT_INT:
            return value
        try:
            number = float(value)
        except OverflowError:
            return default
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            return default
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return default
    if isinstance(number, float):
        if not math.isfinite(number):
            return default
        if number.is_integer() and abs(number) <= _MAX_EXACT_INT:
            return int(number)
    return number


def coerce_timestamp(value: Any, default: Optional[int]) -> Optional[int]:
    """Return *value* as integer milliseconds or *default* when unusable."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number) or abs(number) > _MAX_INT64:
        return default
    return int(number)


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def clean_optional_text(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text or None


__all__ = [
    "Number",
    "coerce_number",
    "coerce_timestamp",
    "clean_text",
    "clean_optional_text",
]
