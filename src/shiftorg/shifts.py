"""Shift kinds and validation of shift submissions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .dates import format_local_date, parse_local_date, parse_time_string
from .errors import FormatError, ValidationError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Mapping


class ShiftKind(Enum):
    """Kind of shift a user can record."""

    DAY = "day"
    NIGHT = "night"
    EIGHT_HOUR = "8hour"

    @property
    def title(self) -> str:
        """Event title used in calendar exports."""
        return SHIFT_TITLES[self]

    @property
    def crosses_midnight(self) -> bool:
        """Whether a shift of this kind may end on the following day."""
        return self in OVERNIGHT_KINDS

    @property
    def default_hours(self) -> tuple[str, str]:
        """Preset start and end times offered by the shift form."""
        return DEFAULT_HOURS[self]


SHIFT_TITLES = {
    ShiftKind.DAY: "Day Shift",
    ShiftKind.NIGHT: "Night Shift",
    ShiftKind.EIGHT_HOUR: "8-Hour Shift",
}

DEFAULT_HOURS = {
    ShiftKind.DAY: ("07:00", "19:00"),
    ShiftKind.NIGHT: ("19:00", "07:00"),
    ShiftKind.EIGHT_HOUR: ("07:00", "15:00"),
}

OVERNIGHT_KINDS = frozenset({ShiftKind.NIGHT, ShiftKind.EIGHT_HOUR})
"""Kinds whose end time may fall after midnight.

Day shifts never roll over; one that ends before it starts is rejected.
"""

TRUE_VALUES = ("true", "1", "t", "on", "yes")


def parse_kind(value: str | None) -> ShiftKind:
    """Return the ShiftKind for a submitted value."""
    try:
        return ShiftKind(value)
    except ValueError:
        _msg = f"Unknown shift type {value!r}"
        raise ValidationError(_msg) from None


def parse_bool(value: Any) -> bool:  # noqa: ANN401
    """Interpret a checkbox or JSON value as a boolean."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


@dataclass(frozen=True)
class ShiftRequest:
    """A validated shift, not yet tied to a date or an owner."""

    kind: ShiftKind
    start_time: str
    end_time: str
    is_overtime: bool = False


def check_times(kind: ShiftKind, start_time: str, end_time: str) -> None:
    """Validate the start and end of a shift of the given kind.

    Times must be 24-hour HH:MM and differ. Only overnight kinds may end
    earlier in the day than they start.
    """
    start = parse_time_string(start_time)
    end = parse_time_string(end_time)
    if start == end:
        _msg = "Start and end time must differ"
        raise ValidationError(_msg)
    if end < start and not kind.crosses_midnight:
        _msg = (
            f"A {kind.title.lower()} cannot end ({end_time})"
            f" before it starts ({start_time})"
        )
        raise ValidationError(_msg)


def parse_shift_request(data: Mapping[str, Any]) -> ShiftRequest:
    """Build a ShiftRequest from form or JSON data.

    Missing times fall back to the presets of the shift kind.
    """
    kind = parse_kind(data.get("kind") or data.get("type"))
    default_start, default_end = kind.default_hours
    start_time = str(data.get("start_time") or default_start).strip()
    end_time = str(data.get("end_time") or default_end).strip()

    check_times(kind, start_time, end_time)

    return ShiftRequest(
        kind=kind,
        start_time=start_time,
        end_time=end_time,
        is_overtime=parse_bool(data.get("is_overtime")),
    )


def parse_dates(values: Iterable[str]) -> list[str]:
    """Validate the selected dates.

    Returns them normalized to ``YYYY-MM-DD``, without repetitions and in
    the order given. At least one date is required.
    """
    dates: list[str] = []
    for value in values:
        if not value or not value.strip():
            continue
        normalized = format_local_date(parse_local_date(value))
        if normalized not in dates:
            dates.append(normalized)

    if not dates:
        _msg = "Select at least one date"
        raise FormatError(_msg)
    return dates
