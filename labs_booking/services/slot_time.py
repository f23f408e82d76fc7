"""
Time label parsing and canonical slot assembly.

Every equality check between slots goes through the canonical form produced
here: a ``YYYY-MM-DD`` date plus a 24-hour ``(hour, minute)`` clock time,
anchored to the business timezone. Malformed input always raises
``ValidationError``; nothing is guessed.
"""

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from labs_booking.core.errors import ValidationError

_TWELVE_HOUR_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE | re.ASCII)
_TWENTY_FOUR_HOUR_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$", re.ASCII)
_DATE_RE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})", re.ASCII)


@dataclass(frozen=True)
class ClockTime:
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class CanonicalSlot:
    day: date
    time: ClockTime
    starts_at: datetime  # aware, in the business timezone
    label: str  # as submitted, trimmed

    @property
    def date_str(self) -> str:
        return self.day.isoformat()

    @property
    def key(self) -> str:
        return f"{self.date_str}T{self.time}"

    @property
    def starts_at_utc(self) -> datetime:
        return self.starts_at.astimezone(UTC)

    def isoformat(self) -> str:
        return self.starts_at.isoformat()


def parse_time_label(label: str | None) -> ClockTime:
    """Parse ``"9:30 AM"`` or ``"14:30"`` into a 24-hour clock time."""
    if not label or not isinstance(label, str):
        raise ValidationError("Invalid time format. Please try again.")

    match = _TWELVE_HOUR_RE.match(label)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))
        period = match.group(3).upper()
        if not 1 <= hour <= 12 or not 0 <= minute <= 59:
            raise ValidationError(f"Invalid time: {label!r}")
        if period == "PM" and hour != 12:
            hour += 12
        elif period == "AM" and hour == 12:
            hour = 0
        return ClockTime(hour, minute)

    match = _TWENTY_FOUR_HOUR_RE.match(label)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise ValidationError(f"Invalid time: {label!r}")
        return ClockTime(hour, minute)

    raise ValidationError(f"Invalid time: {label!r}")


def format_time_label(clock: ClockTime) -> str:
    """24-hour clock time back to the ``"9:30 AM"`` label style."""
    period = "AM" if clock.hour < 12 else "PM"
    hour = clock.hour % 12 or 12
    return f"{hour}:{clock.minute:02d} {period}"


def parse_calendar_date(value: str | None) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    if not value or not isinstance(value, str):
        raise ValidationError("Invalid date format. Please try again.")
    match = _DATE_RE.fullmatch(value.strip())
    if not match:
        raise ValidationError("Invalid date format. Please try again.")
    year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}") from e


def assemble_slot(date_str: str, time_label: str, tz: ZoneInfo) -> CanonicalSlot:
    day = parse_calendar_date(date_str)
    clock = parse_time_label(time_label)
    starts_at = datetime(day.year, day.month, day.day, clock.hour, clock.minute, tzinfo=tz)
    return CanonicalSlot(day=day, time=clock, starts_at=starts_at, label=time_label.strip())


def as_utc(instant: datetime) -> datetime:
    """Aware UTC view of a stored instant. SQLite hands timestamps back without their offset."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def local_date_of(instant: datetime, tz: ZoneInfo) -> date:
    """Calendar date of an instant in ``tz``."""
    return as_utc(instant).astimezone(tz).date()
