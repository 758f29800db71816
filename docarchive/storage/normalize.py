"""Normalization of raw row values at the storage boundary.

Aggregate queries hand back driver-specific numeric types (``Decimal`` from
``SUM()`` on PostgreSQL, 64-bit integers from
``COUNT()``) and ``date``/``datetime`` objects. Everything that leaves the
storage layer as a plain row goes through :func:`normalize_row` once, so
response shaping never has to coerce values itself.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Mapping


def normalize_value(value: Any) -> Any:
    """Convert a single column value into a JSON-friendly Python value."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, Decimal):
        # Counts and sums are integral; keep fractional values as floats
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    if isinstance(value, Mapping):
        return normalize_row(value)
    return value


def normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Return a plain dict with every value normalized."""
    return {key: normalize_value(value) for key, value in row.items()}
