"""Tests for shift kinds and form validation."""

from __future__ import annotations

import pytest
from shiftorg.errors import FormatError, ValidationError
from shiftorg.shifts import (
    ShiftKind,
    ShiftRequest,
    parse_bool,
    parse_dates,
    parse_kind,
    parse_shift_request,
)


def test_kinds() -> None:
    """Each kind has a title, preset hours and a rollover rule."""
    assert ShiftKind.DAY.title == "Day Shift"
    assert ShiftKind.NIGHT.title == "Night Shift"
    assert ShiftKind.EIGHT_HOUR.title == "8-Hour Shift"
    assert ShiftKind.NIGHT.default_hours == ("19:00", "07:00")
    assert not ShiftKind.DAY.crosses_midnight
    assert ShiftKind.NIGHT.crosses_midnight
    assert ShiftKind.EIGHT_HOUR.crosses_midnight


def test_parse_kind() -> None:
    """Kinds are read from their stored value."""
    assert parse_kind("8hour") == ShiftKind.EIGHT_HOUR
    with pytest.raises(ValidationError):
        parse_kind("evening")
    with pytest.raises(ValidationError):
        parse_kind(None)


def test_parse_shift_request() -> None:
    """A complete submission is accepted as is."""
    request = parse_shift_request(
        {
            "kind": "night",
            "start_time": "19:30",
            "end_time": "07:30",
            "is_overtime": "on",
        },
    )
    assert request == ShiftRequest(
        kind=ShiftKind.NIGHT,
        start_time="19:30",
        end_time="07:30",
        is_overtime=True,
    )


def test_parse_shift_request_defaults() -> None:
    """Missing times use the presets; the legacy 'type' field works too."""
    request = parse_shift_request({"type": "day"})
    assert request.start_time == "07:00"
    assert request.end_time == "19:00"
    assert not request.is_overtime


def test_day_shift_ending_before_start_is_rejected() -> None:
    """Only overnight kinds may end before they start."""
    with pytest.raises(ValidationError):
        parse_shift_request({"kind": "day", "start_time": "19:00", "end_time": "07:00"})
    parse_shift_request({"kind": "8hour", "start_time": "23:00", "end_time": "07:00"})


@pytest.mark.parametrize(
    "data",
    [
        {"kind": "day", "start_time": "7:00", "end_time": "19:00"},
        {"kind": "day", "start_time": "07:00", "end_time": "24:00"},
        {"kind": "night", "start_time": "19:00", "end_time": "19:00"},
        {"kind": "holiday"},
    ],
)
def test_parse_shift_request_invalid(data: dict[str, str]) -> None:
    """Malformed times, equal times and unknown kinds are refused."""
    with pytest.raises(ValidationError):
        parse_shift_request(data)


def test_parse_dates() -> None:
    """Dates are normalized, deduplicated and keep their order."""
    assert parse_dates(["2025-01-03", "", "2025-1-1", "2025-01-03"]) == [
        "2025-01-03",
        "2025-01-01",
    ]


def test_parse_dates_errors() -> None:
    """No dates or a malformed one is a FormatError."""
    with pytest.raises(FormatError):
        parse_dates([])
    with pytest.raises(FormatError):
        parse_dates(["", "  "])
    with pytest.raises(FormatError):
        parse_dates(["2025-01-01", "01/02/2025"])


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, True), ("true", True), ("on", True), ("1", True), (None, False), ("", False), ("no", False)],
)
def test_parse_bool(value: object, expected: bool) -> None:  # noqa: FBT001
    """Checkbox and JSON values are read as booleans."""
    assert parse_bool(value) is expected
