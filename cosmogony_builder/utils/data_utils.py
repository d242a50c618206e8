"""
Data utility functions for type conversions and null handling.

This module provides helpers for cleaning relation attributes coming from
upstream extracts, where values may be missing, blank or stringly typed.
"""

import pandas as pd
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple


def safe_int_conversion(value: Any) -> Optional[int]:
    """
    Safely convert a value to integer, handling nulls and invalid values.

    Args:
        value: Value to convert to integer (e.g. an ``admin_level`` tag)

    Returns:
        Integer value or None if conversion fails
    """
    if value is None or isinstance(value, (list, dict)):
        return None
    if isinstance(value, str):
        value = value.strip()
        if value == '':
            return None
    elif pd.isna(value):
        return None

    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def safe_string_conversion(value: Any) -> str:
    """
    Safely convert a value to string, handling nulls and cleaning whitespace.

    Args:
        value: Value to convert to string

    Returns:
        Cleaned string value or empty string if null
    """
    if value is None or isinstance(value, (list, dict)):
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""

    return str(value).strip()


def is_null_or_empty(value: Any) -> bool:
    """
    Check if a value is null, empty, or contains only whitespace.

    Args:
        value: Value to check

    Returns:
        True if value is null/empty, False otherwise
    """
    if value is None:
        return True

    if isinstance(value, str):
        return not value.strip()

    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0

    return bool(pd.isna(value))


def normalize_name(value: str) -> str:
    """
    Normalize a zone name for comparison: collapse whitespace and lowercase.

    Args:
        value: Name to normalize

    Returns:
        Normalized name
    """
    if not value:
        return ""

    return ' '.join(value.strip().split()).lower()


def clean_attributes(attributes: Optional[Dict[Any, Any]]) -> Dict[str, str]:
    """
    Clean an attribute map: string keys and values, blank entries removed.

    Args:
        attributes: Raw attribute map from the relation extract

    Returns:
        Dictionary with only populated attributes
    """
    cleaned = {}
    for key, value in (attributes or {}).items():
        key = safe_string_conversion(key)
        if not key or is_null_or_empty(value):
            continue
        cleaned[key] = safe_string_conversion(value)
    return cleaned


def count_populated_attributes(attributes: Dict[str, Any]) -> int:
    """Count attribute entries holding a non-empty value."""
    return sum(1 for value in attributes.values() if not is_null_or_empty(value))


def snap_coordinates(coords: Iterable[Sequence[float]], precision: int) -> List[Tuple[float, float]]:
    """
    Round coordinates to a fixed number of decimals.

    Shared nodes are emitted with identical coordinates by the upstream
    extract, but float round trips through text formats can perturb the last
    digits; snapping makes endpoint matching exact again.

    Args:
        coords: Sequence of (x, y) pairs
        precision: Number of decimals to keep

    Returns:
        List of (x, y) tuples
    """
    snapped = []
    for coord in coords:
        if len(coord) < 2:
            raise ValueError(f"Coordinate needs at least two components: {coord!r}")
        snapped.append((round(float(coord[0]), precision), round(float(coord[1]), precision)))
    return snapped
