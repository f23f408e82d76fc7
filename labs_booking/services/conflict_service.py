"""
Conflict detection across the two collections that share the slot grid.

A slot is taken when any consultation or showcase booking that is not
cancelled sits on the same canonical date and clock time. Pending records
block exactly like confirmed ones.
"""

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labs_booking.core.errors import SlotConflictError, ValidationError
from labs_booking.models.booking import Consultation, ShowcaseBooking, is_cancelled
from labs_booking.services.slot_time import (
    CanonicalSlot,
    local_date_of,
    parse_calendar_date,
    parse_time_label,
)

CONFLICT_MESSAGE = "This time slot is already booked. Please select another date or time."

BookedRecord = Consultation | ShowcaseBooking


def normalize_time_label(label: str | None) -> str:
    return (label or "").strip().lower()


def _time_matches(stored_label: str | None, slot: CanonicalSlot) -> bool:
    if not stored_label:
        return False
    try:
        return parse_time_label(stored_label) == slot.time
    except ValidationError:
        # Legacy labels that do not parse can only match verbatim
        return normalize_time_label(stored_label) == normalize_time_label(slot.label)


def consultation_conflicts(consultation: Consultation, slot: CanonicalSlot) -> bool:
    if not consultation.preferred_date or not consultation.preferred_time:
        return False
    if is_cancelled(consultation.status):
        return False
    try:
        day = parse_calendar_date(consultation.preferred_date)
    except ValidationError:
        return False
    return day == slot.day and _time_matches(consultation.preferred_time, slot)


def showcase_conflicts(booking: ShowcaseBooking, slot: CanonicalSlot, tz: ZoneInfo) -> bool:
    if booking.appointment_at is None or not booking.appointment_time:
        return False
    if is_cancelled(booking.status):
        return False
    day = local_date_of(booking.appointment_at, tz)
    return day == slot.day and _time_matches(booking.appointment_time, slot)


def find_conflict(
    slot: CanonicalSlot,
    consultations: Iterable[Consultation],
    showcase_bookings: Iterable[ShowcaseBooking],
    tz: ZoneInfo,
    exclude_id: str | None = None,
) -> BookedRecord | None:
    """Return the first record holding ``slot``, or None when it is free.

    ``exclude_id`` skips the record being moved, so it never conflicts with itself.
    """
    for consultation in consultations:
        if consultation.id != exclude_id and consultation_conflicts(consultation, slot):
            return consultation
    for booking in showcase_bookings:
        if booking.id != exclude_id and showcase_conflicts(booking, slot, tz):
            return booking
    return None


def has_conflict(
    slot: CanonicalSlot,
    consultations: Iterable[Consultation],
    showcase_bookings: Iterable[ShowcaseBooking],
    tz: ZoneInfo,
    exclude_id: str | None = None,
) -> bool:
    return find_conflict(slot, consultations, showcase_bookings, tz, exclude_id) is not None


def _day_bounds_utc(slot_day, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime(slot_day.year, slot_day.month, slot_day.day, tzinfo=tz)
    return start.astimezone(UTC), (start + timedelta(days=1)).astimezone(UTC)


async def load_day_records(
    session: AsyncSession, slot_day, tz: ZoneInfo
) -> tuple[list[Consultation], list[ShowcaseBooking]]:
    """Fetch every record on one business day, cancelled ones included."""
    result = await session.execute(
        select(Consultation).where(Consultation.preferred_date == slot_day.isoformat())
    )
    consultations = list(result.scalars().all())
    start, end = _day_bounds_utc(slot_day, tz)
    result = await session.execute(
        select(ShowcaseBooking).where(
            ShowcaseBooking.appointment_at >= start,
            ShowcaseBooking.appointment_at < end,
        )
    )
    return consultations, list(result.scalars().all())


async def ensure_slot_free(
    session: AsyncSession, slot: CanonicalSlot, tz: ZoneInfo, exclude_id: str | None = None
) -> None:
    consultations, showcase_bookings = await load_day_records(session, slot.day, tz)
    if has_conflict(slot, consultations, showcase_bookings, tz, exclude_id):
        raise SlotConflictError(CONFLICT_MESSAGE)
