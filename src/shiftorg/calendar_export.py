"""Conversion of shifts into iCalendar events and files.

Event times are written as floating local times (no ``Z`` and no
``TZID``), so a shift from 19:00 to 07:00 shows up from 19:00 to 07:00 in
whatever timezone the calendar application is set to. The configured
timezone is only advertised through ``X-WR-TIMEZONE``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from . import get_timezone
from .dates import parse_local_date, parse_time_string
from .errors import NotFoundError, SerializationError, ValidationError
from .models import UTC
from .shifts import parse_kind

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Sequence

    from .models import Shift

logger = getLogger(__name__)

PRODID = "-//SHIFT Organizer//EN"
CALENDAR_NAME = "SHIFT Organizer"
UID_NAMESPACE = "shift-organizer"
DEFAULT_DESCRIPTION = "Generated from SHIFT Organizer"
DEFAULT_LOCATION = "Work"

LOCAL_FORMAT = "%Y%m%dT%H%M%S"
UTC_FORMAT = "%Y%m%dT%H%M%SZ"
CRLF = "\r\n"
MAX_LINE_OCTETS = 75


@dataclass(frozen=True)
class CalendarEvent:
    """A shift ready to be written as a VEVENT."""

    uid: str
    title: str
    start: datetime
    """Local wall-clock start, naive."""
    end: datetime
    """Local wall-clock end, naive."""
    description: str = DEFAULT_DESCRIPTION
    location: str = DEFAULT_LOCATION
    stamp: datetime | None = None
    """When the event was created, in UTC. Used as DTSTAMP."""


def event_uid(shift_id: str) -> str:
    """Return the calendar UID of a shift.

    Calendar applications deduplicate on it, so the same shift must always
    get the same UID.
    """
    return f"shift-{shift_id}@{UID_NAMESPACE}"


def shift_to_event(shift: Shift) -> CalendarEvent:
    """Convert a stored shift into a calendar event.

    Overnight kinds (night and 8hour) whose end time is earlier than the
    start time end on the following calendar day. A day shift that ends
    before it starts is refused rather than exported backwards.
    """
    year, month, day = parse_local_date(shift.date)
    start_hour, start_minute = parse_time_string(shift.start_time)
    end_hour, end_minute = parse_time_string(shift.end_time)
    kind = parse_kind(shift.shift_kind)

    start_day = date(year, month, day)
    end_day = start_day
    if (end_hour, end_minute) < (start_hour, start_minute):
        if not kind.crosses_midnight:
            _msg = (
                f"Shift {shift.id} is a {kind.value} shift ending before it starts"
                f" ({shift.start_time}-{shift.end_time})"
            )
            raise ValidationError(_msg)
        end_day = start_day + timedelta(days=1)

    title = kind.title
    description = DEFAULT_DESCRIPTION
    if shift.is_overtime:
        title = f"{title} (Overtime)"
        description = f"{description}\nOvertime"

    return CalendarEvent(
        uid=event_uid(shift.id),
        title=title,
        start=datetime(year, month, day, start_hour, start_minute),
        end=datetime(end_day.year, end_day.month, end_day.day, end_hour, end_minute),
        description=description,
        stamp=shift.created_at_utc if shift.created_at else None,
    )


def escape_text(value: str) -> str:
    """Escape a TEXT property value."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def fold_line(line: str) -> str:
    """Fold a content line into chunks of at most 75 octets.

    Continuation lines start with a single space, which counts towards
    their length. Multi-byte characters are never split.
    """
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return line

    chunks: list[str] = []
    current = ""
    current_octets = 0
    limit = MAX_LINE_OCTETS
    for char in line:
        char_octets = len(char.encode("utf-8"))
        if current_octets + char_octets > limit:
            chunks.append(current)
            current, current_octets = "", 0
            limit = MAX_LINE_OCTETS - 1
        current += char
        current_octets += char_octets
    chunks.append(current)
    return (CRLF + " ").join(chunks)


def _format_stamp(stamp: datetime) -> str:
    if stamp.tzinfo is None:
        stamp = UTC.localize(stamp)
    return stamp.astimezone(UTC).strftime(UTC_FORMAT)


def _event_lines(event: CalendarEvent, generated_at: datetime) -> list[str]:
    return [
        "BEGIN:VEVENT",
        f"UID:{event.uid}",
        f"DTSTAMP:{_format_stamp(event.stamp or generated_at)}",
        f"DTSTART:{event.start.strftime(LOCAL_FORMAT)}",
        f"DTEND:{event.end.strftime(LOCAL_FORMAT)}",
        f"SUMMARY:{escape_text(event.title)}",
        f"DESCRIPTION:{escape_text(event.description)}",
        f"LOCATION:{escape_text(event.location)}",
        "STATUS:CONFIRMED",
        "SEQUENCE:0",
        "END:VEVENT",
    ]


def build_calendar(
    events: Sequence[CalendarEvent],
    *,
    calendar_name: str = CALENDAR_NAME,
    generated_at: datetime | None = None,
) -> str:
    """Serialize events into the text of an .ics file.

    Events keep the order given. ``generated_at`` is the DTSTAMP of events
    that carry no stamp of their own and defaults to now.
    """
    if not events:
        _msg = "Cannot build a calendar without events"
        raise SerializationError(_msg)

    generated_at = generated_at or datetime.now(tz=UTC)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{escape_text(calendar_name)}",
        f"X-WR-TIMEZONE:{get_timezone().zone}",
    ]
    try:
        for event in events:
            lines.extend(_event_lines(event, generated_at))
    except (AttributeError, TypeError, ValueError) as e:
        _msg = f"Invalid calendar event: {e}"
        raise SerializationError(_msg) from e
    lines.append("END:VCALENDAR")

    return CRLF.join(fold_line(line) for line in lines) + CRLF


def export_shifts(
    shifts: Sequence[Shift],
    *,
    calendar_name: str = CALENDAR_NAME,
    generated_at: datetime | None = None,
) -> str:
    """Build the .ics file for a list of shifts.

    No shifts is reported as NotFoundError, never as an empty calendar.
    """
    if not shifts:
        _msg = "No shifts found to export"
        raise NotFoundError(_msg)

    events = [shift_to_event(shift) for shift in shifts]
    logger.debug("Exporting %d events", len(events))
    return build_calendar(
        events,
        calendar_name=calendar_name,
        generated_at=generated_at,
    )
