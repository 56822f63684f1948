"""Lenient parsing of client supplied identifiers."""
from typing import Any, Optional


def coerce_positive_int(value: Any) -> Optional[int]:
    """Return value as a positive int, or None if it is not one ("12" -> 12, "x" -> None)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
