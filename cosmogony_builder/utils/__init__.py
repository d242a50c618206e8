"""
Utility functions and helpers.
"""

from .data_utils import (
    safe_int_conversion,
    safe_string_conversion,
    normalize_name,
    is_null_or_empty,
    clean_attributes,
    count_populated_attributes,
    snap_coordinates
)

__all__ = [
    'safe_int_conversion',
    'safe_string_conversion',
    'normalize_name',
    'is_null_or_empty',
    'clean_attributes',
    'count_populated_attributes',
    'snap_coordinates'
]
