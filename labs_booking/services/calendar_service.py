import logging
from datetime import datetime

import httpx

from labs_booking.core.config import settings
from labs_booking.core.errors import DownstreamFailure

logger = logging.getLogger(__name__)


async def book_event(
    *,
    name: str,
    email: str,
    phone: str,
    service: str,
    date: str,
    starts_at: datetime,
    location: str,
    booking_id: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Add the meeting to the studio calendar through the calendar booking endpoint.

    ``starts_at`` is sent as an ISO instant rather than the slot label so the
    calendar never has to guess the time. The endpoint's own e-mail is
    suppressed; confirmations go out from this service.
    """
    if not settings.calendar_book_url:
        logger.debug("Calendar sync disabled (CALENDAR_BOOK_URL not set), skipping %s", booking_id)
        return
    payload = {
        "name": name,
        "email": email,
        "phone": phone,
        "service": service,
        "date": date,
        "timeSlot": starts_at.isoformat(),
        "location": location,
        "bookingId": booking_id,
        "skipEmail": True,
    }
    try:
        async with httpx.AsyncClient(timeout=settings.calendar_timeout_seconds, transport=transport) as client:
            resp = await client.post(settings.calendar_book_url, json=payload)
    except httpx.HTTPError as e:
        raise DownstreamFailure(f"Calendar sync for {booking_id} failed: {type(e).__name__}: {e}") from e
    if resp.status_code >= 300:
        raise DownstreamFailure(
            f"Calendar sync for {booking_id} failed: status={resp.status_code} body={resp.text[:500]}"
        )
    logger.info("Calendar event created for %s", booking_id)
