"""
Numeric Utilities - Innovation Assessment Client
assessment_app/scoring/utils.py

Tolerant parsing and bounding helpers for raw indicator answers.
"""

import math
from typing import Any, List, Optional


def is_blank(value: Any) -> bool:
    """None, empty string and whitespace-only strings count as unanswered."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def to_number(value: Any) -> Optional[float]:
    """
    Parse a raw answer into a float.

    Returns None for blank or unparseable input, and for NaN / infinity.
    Booleans map to 1.0 / 0.0.
    """
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clamp(value: float, min_val: float = 0.0, max_val: float = 100.0) -> float:
    """Clamp value to range [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def mean(values: List[float]) -> float:
    """Arithmetic mean; 0.0 for an empty list."""
    if not values:
        return 0.0
    return sum(values) / len(values)
