"""
General helper utilities
"""
import math
from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def round_half_up(value: float):
    """Round .5 towards +infinity (Python's round() is banker's rounding).

    NaN and infinities are returned unchanged.
    """
    if not math.isfinite(value):
        return float(value)
    return int(math.floor(value + 0.5))


def round2(value: float) -> float:
    """Round half up to two decimals"""
    if not math.isfinite(value):
        return float(value)
    return math.floor(value * 100 + 0.5) / 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: str) -> Optional[date]:
    """Parse the leading YYYY-MM-DD of a string, None if it isn't a date"""
    try:
        return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
    except (ValueError, AttributeError):
        return None


def day_index(value: str) -> int:
    """Weekday of a date string with Sunday = 0"""
    d = parse_date(value)
    if d is None:
        return 0
    return (d.weekday() + 1) % 7


def month_index(value: str) -> int:
    """Zero-based month (January = 0) of a date string"""
    d = parse_date(value)
    return d.month - 1 if d else 0


def weekday_name(value: str) -> str:
    return WEEKDAY_NAMES[day_index(value)]


def epoch_millis(value: str) -> int:
    """Milliseconds since the epoch for midnight UTC of a date string"""
    d = parse_date(value)
    if d is None:
        return 0
    return (d - date(1970, 1, 1)).days * 86_400_000


def divide(numerator: float, denominator: float) -> float:
    """IEEE division: x/0 is +-inf and 0/0 is NaN instead of raising"""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def mean(values) -> float:
    """Arithmetic mean, 0 for an empty sequence"""
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def json_safe(value: Any) -> Any:
    """Recursively replace NaN/Infinity with None so the value serialises as JSON"""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if is_dataclass(value) and not isinstance(value, type):
        return json_safe(asdict(value))
    if hasattr(value, "tolist"):
        # numpy scalar or array
        return json_safe(value.tolist())
    return value

