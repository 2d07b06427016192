"""Utility functions for the crosscheck engine."""

from __future__ import annotations

import json
import math
import re
from datetime import timedelta
from typing import Any


def get_json_size_mb(obj: Any) -> float:
    """Get the approximate size of a JSON object in megabytes."""
    json_str = json.dumps(obj)
    return len(json_str.encode('utf-8')) / (1024 * 1024)


def is_numeric(value: Any) -> bool:
    """Check if a value is numeric (int or float)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def get_type_name(value: Any) -> str:
    """
    Get the JSON type name for a value.

    Integers and floats are both "number", as a JSON decoder on the other
    system may produce either for the same field.
    """
    if value is None:
        return "null"
    elif isinstance(value, bool):
        return "boolean"
    elif is_numeric(value):
        return "number"
    elif isinstance(value, str):
        return "string"
    elif isinstance(value, list):
        return "array"
    elif isinstance(value, dict):
        return "object"
    else:
        return type(value).__name__


def values_equal(old: Any, new: Any) -> bool:
    """
    Deep equality over JSON values.

    Booleans never equal numbers, ints equal floats of the same value,
    objects compare key-by-key and arrays index-by-index.
    """
    old_type = get_type_name(old)
    if old_type != get_type_name(new):
        return False

    if old_type == "object":
        if old.keys() != new.keys():
            return False
        return all(values_equal(old[k], new[k]) for k in old)

    if old_type == "array":
        if len(old) != len(new):
            return False
        return all(values_equal(a, b) for a, b in zip(old, new))

    if old_type == "number":
        return float(old) == float(new)

    return old == new


def build_path(parent_path: str, key: str | int) -> str:
    """Build a signature path from parent path and key."""
    if isinstance(key, int):
        return f"{parent_path}[{key}]"
    if not parent_path:
        return str(key)
    return f"{parent_path}.{key}"


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round half away from zero.

    Python's round() uses banker's rounding; percentages and latencies are
    reported with the usual half-up rule instead.
    """
    factor = 10 ** digits
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


def parse_duration(duration_str: str) -> timedelta:
    """
    Parse a duration string like '5s', '1m', '1h', '1d' into a timedelta.

    Args:
        duration_str: Duration string (e.g., '5s', '1m', '2h', '1d')

    Returns:
        timedelta object
    """
    if not duration_str:
        return timedelta(0)

    match = re.match(r'^(\d+(?:\.\d+)?)\s*(ms|[smhd])$', duration_str.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")

    value = float(match.group(1))
    unit = match.group(2)
    units = {
        'ms': 'milliseconds',
        's': 'seconds',
        'm': 'minutes',
        'h': 'hours',
        'd': 'days',
    }
    return timedelta(**{units[unit]: value})
