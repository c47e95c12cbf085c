"""
Utility helper functions for safe data handling.

Upstream payloads are third-party JSON: any field may be missing, null,
or the wrong type. These helpers never raise.
"""
from typing import Any, Optional


def safe_str(value: Any, default: str = "") -> str:
    """
    Safely convert value to string, handling None.

    Args:
        value: Any value to convert
        default: Default string if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value)


def safe_lower(value: Any) -> str:
    """Safely lowercase a value; None becomes ""."""
    if value is None:
        return ""
    return str(value).lower()


def safe_int(value: Any, default: int = 0) -> int:
    """
    Safely convert value to int, handling None and invalid values.

    Numeric strings such as "42" or "42.0" are accepted.

    Args:
        value: Any value to convert
        default: Default int if conversion fails

    Returns:
        Integer or default
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        pass
    try:
        return int(float(value))
    except (ValueError, TypeError, OverflowError):
        return default


def safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Safely convert value to float.

    Returns default (None unless given) for None, booleans, empty strings
    and anything unparseable, so "no data" stays distinct from 0.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().rstrip("%")
        if not value:
            return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    if result != result:  # NaN
        return default
    return result


def dig(data: Any, *path: Any, default: Any = None) -> Any:
    """
    Walk nested dicts/lists without raising.

    dig(event, "competitions", 0, "status", "type", "state")
    """
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return default
            current = current[key]
        else:
            if not isinstance(current, dict):
                return default
            current = current.get(key)
        if current is None:
            return default
    return current
