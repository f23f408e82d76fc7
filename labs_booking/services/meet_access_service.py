"""
Time-gated access to online showcase meetings.

The meeting link opens 15 minutes before the booked start and closes when
the meeting ends (start + meeting duration).
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from labs_booking.core.config import settings
from labs_booking.models.booking import ShowcaseBooking
from labs_booking.services.email_service import format_meeting_date, format_meeting_time
from labs_booking.services.slot_time import as_utc


@dataclass
class MeetAccess:
    can_join: bool
    message: str
    time_remaining: str
    meeting_has_passed: bool
    scheduled_time: str
    meeting_start: datetime
    meeting_end: datetime


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def format_time_remaining(target: datetime, now: datetime) -> str:
    diff = target - now
    if diff <= timedelta(0):
        return "Your meeting time has passed. Please contact us to reschedule."
    minutes = int(diff.total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if days > 0:
        return f"Your meeting is in {_plural(days, 'day')} and {_plural(hours % 24, 'hour')}"
    if hours > 0:
        return f"Your meeting is in {_plural(hours, 'hour')} and {_plural(minutes % 60, 'minute')}"
    return f"Your meeting is in {_plural(minutes, 'minute')}"


def evaluate_meet_access(
    booking: ShowcaseBooking,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> MeetAccess:
    tz = tz or settings.business_tz
    now = now or datetime.now(UTC)
    start = as_utc(booking.appointment_at)
    end = start + timedelta(minutes=settings.meeting_duration_minutes)
    window_start = start - timedelta(minutes=settings.join_window_before_minutes)
    scheduled = f"{format_meeting_date(start, tz)} at {format_meeting_time(start, tz)}"

    if now > end:
        return MeetAccess(
            can_join=False,
            message=(
                f"This meeting has already passed. Your scheduled time slot was {scheduled}. "
                "Please contact us if you need to reschedule."
            ),
            time_remaining="",
            meeting_has_passed=True,
            scheduled_time=scheduled,
            meeting_start=start,
            meeting_end=end,
        )
    if now < window_start:
        return MeetAccess(
            can_join=False,
            message=f"Your meeting is scheduled for {scheduled}. Please join during your scheduled time.",
            time_remaining=format_time_remaining(window_start, now),
            meeting_has_passed=False,
            scheduled_time=scheduled,
            meeting_start=start,
            meeting_end=end,
        )
    return MeetAccess(
        can_join=True,
        message="You can now join your meeting!",
        time_remaining="",
        meeting_has_passed=False,
        scheduled_time=scheduled,
        meeting_start=start,
        meeting_end=end,
    )
