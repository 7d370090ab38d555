"""
Input validation utilities
"""
from typing import Iterable, Optional

from backend.utils.helpers import parse_date


def validate_date(value: str) -> str:
    """Validate a YYYY-MM-DD date string"""
    if parse_date(value) is None:
        raise ValueError(f"Invalid date '{value}'. Expected YYYY-MM-DD")
    return value


def validate_positive(value: float, name: str) -> float:
    """Validate that a quantity is strictly positive"""
    if value is None or value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def validate_choice(value: str, choices: Iterable[str], name: str) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ValueError(f"Invalid {name} '{value}'. Must be one of: {', '.join(choices)}")
    return value


def validate_csv_filename(filename: Optional[str]) -> str:
    """Validate that an uploaded file looks like CSV"""
    if not filename or not filename.lower().endswith(".csv"):
        raise ValueError("Only .csv files are supported")
    return filename


def missing_fields(data: dict, required: Iterable[str]) -> list[str]:
    """Required keys that are absent, None, empty or zero"""
    return [name for name in required if not data.get(name)]
