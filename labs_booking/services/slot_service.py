import logging
from datetime import date
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from labs_booking.core.config import settings
from labs_booking.core.errors import ValidationError
from labs_booking.services.conflict_service import has_conflict, load_day_records
from labs_booking.services.slot_time import CanonicalSlot, assemble_slot

logger = logging.getLogger(__name__)


def is_bookable_day(d: date) -> bool:
    if d.isoformat() in settings.blocked_dates_set:
        return False
    return d.weekday() in settings.available_weekdays_set


def _slots_for_date(d: date, tz: ZoneInfo) -> list[CanonicalSlot]:
    """Configured grid for the given date, in grid order. Empty on blocked or closed days."""
    if not is_bookable_day(d):
        return []
    slots: list[CanonicalSlot] = []
    for label in settings.slot_labels_list:
        try:
            slots.append(assemble_slot(d.isoformat(), label, tz))
        except ValidationError:
            logger.warning("Ignoring unparseable slot label in configuration: %r", label)
    return slots


async def get_available_slots_for_date(
    session: AsyncSession, d: date, tz: ZoneInfo | None = None
) -> list[tuple[CanonicalSlot, bool]]:
    """Returns list of (slot, available). Held by any non-cancelled consultation or showcase booking means unavailable."""
    tz = tz or settings.business_tz
    slots = _slots_for_date(d, tz)
    if not slots:
        return []
    consultations, showcase_bookings = await load_day_records(session, d, tz)
    return [(s, not has_conflict(s, consultations, showcase_bookings, tz)) for s in slots]
