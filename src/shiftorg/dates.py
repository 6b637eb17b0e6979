"""Local date and wall-clock time helpers.

Shift dates are stored as ``YYYY-MM-DD`` strings without a timezone and
must always be read as the date printed on the calendar. They are split
into components by hand and never passed through a generic date parser,
which could apply a UTC offset and move the shift to the previous or
next day.
"""

from __future__ import annotations

import re
from datetime import date

from .errors import FormatError, ValidationError

TIME_PATTERN = re.compile(r"([0-1][0-9]|2[0-3]):[0-5][0-9]")
"""24-hour HH:MM. Both hour digits are required."""

DATE_SEPARATOR = "-"
DATE_COMPONENTS = 3


def parse_local_date(date_string: str) -> tuple[int, int, int]:
    """Split a ``YYYY-MM-DD`` string into (year, month, day).

    Raises FormatError unless the string has exactly three ASCII numeric
    components that name an existing calendar day.
    """
    parts = date_string.strip().split(DATE_SEPARATOR)
    if len(parts) != DATE_COMPONENTS or not all(
        part.isascii() and part.isdigit() for part in parts
    ):
        _msg = f"Invalid date {date_string!r}, expected YYYY-MM-DD"
        raise FormatError(_msg)

    year, month, day = (int(part) for part in parts)
    try:
        date(year, month, day)
    except ValueError:
        _msg = f"Invalid date {date_string!r}, no such day"
        raise FormatError(_msg) from None
    return year, month, day


def to_local_date(date_string: str) -> date:
    """Return the ``datetime.date`` for a ``YYYY-MM-DD`` string."""
    return date(*parse_local_date(date_string))


def format_local_date(value: date | tuple[int, int, int]) -> str:
    """Format a date, or a (year, month, day) tuple, as ``YYYY-MM-DD``."""
    if isinstance(value, date):
        year, month, day = value.year, value.month, value.day
    else:
        year, month, day = value
    return f"{year:04d}-{month:02d}-{day:02d}"


def is_valid_time_string(s: str) -> bool:
    """Check that ``s`` is a 24-hour HH:MM time.

    "07:30" is valid, "7:30" is not.
    """
    return isinstance(s, str) and TIME_PATTERN.fullmatch(s) is not None


def parse_time_string(s: str) -> tuple[int, int]:
    """Return (hour, minute) for a valid HH:MM string."""
    if not is_valid_time_string(s):
        _msg = f"Invalid time {s!r}, expected 24-hour HH:MM"
        raise ValidationError(_msg)
    hour, minute = s.split(":")
    return int(hour), int(minute)


def format_time(hour: int, minute: int) -> str:
    """Format an hour and minute as HH:MM."""
    return f"{hour:02d}:{minute:02d}"
