from __future__ import annotations

import math
import re
from typing import Any


LEADING_NUMBER_PATTERN = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def sanitize_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "").replace("$", "").replace("%", "").strip()
        try:
            return float(cleaned)
        except ValueError:
            return 0.0
    return 0.0


def parse_leading_number(value: Any) -> float:
    """Read the numeric prefix of a cell or label ("12.5%" -> 12.5, "n/a" -> 0).

    Accepts a single optional sign, so "+8%" reads as 8 while "++8%" and
    "+-3%" read as 0.
    """

    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return 0.0 if math.isnan(value) else float(value)
    match = LEADING_NUMBER_PATTERN.match(str(value))
    if not match:
        return 0.0
    return float(match.group(0))


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale
