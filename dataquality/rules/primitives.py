from __future__ import annotations

import math
from typing import Any, Optional

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


def has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    if isinstance(value, _SEQUENCE_TYPES) and len(value) == 0:
        return False
    return True


def round_half_up(numerator: int, denominator: int) -> int:
    # Exact for non-negative integers; avoids float ties at .5.
    return (2 * numerator + denominator) // (2 * denominator)


def percent(earned: float, total: float) -> int:
    if total <= 0:
        return 0
    if float(earned).is_integer() and float(total).is_integer():
        return round_half_up(int(earned) * 100, int(total))
    return int(math.floor(earned / total * 100 + 0.5))


def clamp(value: int, lower: int = 0, upper: int = 100) -> int:
    return max(lower, min(upper, value))


def to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def as_text(value: Any) -> str:
    if value is None:
        return "undefined"
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else as_text(item) for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
