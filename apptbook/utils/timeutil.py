"""
Date and time-of-day helpers.

Validation is structural only: "2025-13-40" and "27:99" pass. Dates are
compared as plain strings and times are turned into minute-of-day integers
for same-day interval math (no day rollover).
"""
import re
from datetime import datetime
from typing import Optional

from apptbook.core.errors import InvalidInputError

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_TIME_RE = re.compile(r"[0-9]{2}:[0-9]{2}")


def is_valid_date(s: str) -> bool:
    return isinstance(s, str) and _DATE_RE.fullmatch(s) is not None


def is_valid_time(s: str) -> bool:
    return isinstance(s, str) and _TIME_RE.fullmatch(s) is not None


def to_minutes(time_str: str) -> int:
    """'HH:MM' -> hours * 60 + minutes."""
    if not is_valid_time(time_str):
        raise InvalidInputError("Time must look like HH:MM", time=time_str)
    hours, minutes = time_str.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    """Minute-of-day -> 'HH:MM'."""
    return f"{total // 60:02d}:{total % 60:02d}"


def overlaps(start1: int, end1: int, start2: int, end2: int) -> bool:
    # Half-open intervals: touching boundaries do not overlap
    return start1 < end2 and end1 > start2


TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(dt: Optional[datetime]) -> str:
    return dt.strftime(TIMESTAMP_FMT) if dt is not None else ""


def parse_timestamp(value) -> Optional[datetime]:
    """Accept 'YYYY-MM-DD HH:MM:SS' (or ISO with 'T'); empty -> None."""
    if value is None or isinstance(value, datetime):
        return value
    value = str(value).strip()
    if not value:
        return None
    return datetime.fromisoformat(value)
