"""Group keys: absolute dates (``YYYY-MM-DD``) and recurring days (``MM-DD``)."""

import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import List
from zoneinfo import ZoneInfo

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_DAY_PATTERN = re.compile(r"^\d{2}-\d{2}$")

# leap year so 02-29 resolves
_REFERENCE_YEAR = 2000


class KeyKind(str, Enum):
    DATE = "date"
    MONTH_DAY = "month_day"

    @property
    def pattern(self) -> re.Pattern:
        return DATE_PATTERN if self is KeyKind.DATE else MONTH_DAY_PATTERN

    @property
    def label(self) -> str:
        return "YYYY-MM-DD" if self is KeyKind.DATE else "MM-DD"


class InvalidGroupKey(ValueError):
    pass


def to_date(key: str) -> date:
    """Calendar date behind a key; month-day keys land in a leap reference year."""
    try:
        if DATE_PATTERN.match(key):
            return datetime.strptime(key, "%Y-%m-%d").date()
        if MONTH_DAY_PATTERN.match(key):
            return datetime.strptime(f"{_REFERENCE_YEAR}-{key}", "%Y-%m-%d").date()
    except ValueError as e:
        raise InvalidGroupKey(f"Not a real calendar day: {key}") from e
    raise InvalidGroupKey(f"Unrecognized group key: {key}")


def validate_key(kind: KeyKind, key: str) -> str:
    if not isinstance(key, str) or not kind.pattern.match(key):
        raise InvalidGroupKey(f"Date must be {kind.label} format")
    to_date(key)
    return key


def format_key(kind: KeyKind, day: date) -> str:
    return day.strftime("%Y-%m-%d") if kind is KeyKind.DATE else day.strftime("%m-%d")


def default_keys(kind: KeyKind, tz_name: str, include_tomorrow: bool = False) -> List[str]:
    """Today's key in ``tz_name``, optionally followed by tomorrow's."""
    today = datetime.now(ZoneInfo(tz_name)).date()
    days = [today, today + timedelta(days=1)] if include_tomorrow else [today]
    return [format_key(kind, d) for d in days]


def month_day(key: str) -> tuple:
    d = to_date(key)
    return f"{d.month:02d}", f"{d.day:02d}"


def day_ordinal(key: str) -> int:
    """Monotonic day counter for dates, day-of-year for month-day keys."""
    d = to_date(key)
    return d.toordinal() if DATE_PATTERN.match(key) else d.timetuple().tm_yday
