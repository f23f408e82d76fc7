"""Outbox handlers: one coroutine per ``OutboxKind``, keyed by the referenced record id."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from labs_booking.core.config import settings
from labs_booking.models.booking import Consultation, ShowcaseBooking, is_cancelled
from labs_booking.models.outbox import OutboxKind
from labs_booking.models.subject import BuildProject, WebServiceOrder
from labs_booking.services import calendar_service, email_service
from labs_booking.services.slot_time import as_utc
from labs_booking.services.subject_service import OrderSubject

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, str], Awaitable[None]]


async def showcase_business_name(session: AsyncSession, booking: ShowcaseBooking) -> str:
    if booking.project_id:
        project = await session.get(BuildProject, booking.project_id)
        if project:
            return project.business_name
    if booking.order_id:
        order = await session.get(WebServiceOrder, booking.order_id)
        if order:
            return OrderSubject(order).business_name
    return booking.client_name


async def _active_showcase(session: AsyncSession, booking_id: str) -> ShowcaseBooking | None:
    booking = await session.get(ShowcaseBooking, booking_id)
    if booking is None:
        logger.warning("Outbox: showcase booking %s no longer exists, skipping", booking_id)
        return None
    if is_cancelled(booking.status):
        logger.info("Outbox: showcase booking %s was cancelled, skipping", booking_id)
        return None
    return booking


async def _active_consultation(session: AsyncSession, consultation_id: str) -> Consultation | None:
    consultation = await session.get(Consultation, consultation_id)
    if consultation is None:
        logger.warning("Outbox: consultation %s no longer exists, skipping", consultation_id)
        return None
    if is_cancelled(consultation.status):
        logger.info("Outbox: consultation %s was cancelled, skipping", consultation_id)
        return None
    return consultation


async def sync_showcase_calendar(session: AsyncSession, booking_id: str) -> None:
    booking = await _active_showcase(session, booking_id)
    if booking is None:
        return
    business_name = await showcase_business_name(session, booking)
    starts_at = as_utc(booking.appointment_at).astimezone(settings.business_tz)
    await calendar_service.book_event(
        name=booking.client_name,
        email=booking.client_email,
        phone=booking.client_phone,
        service=f"Showcase Meeting - {business_name}",
        date=starts_at.date().isoformat(),
        starts_at=starts_at,
        location=email_service.meeting_location(booking),
        booking_id=booking.id,
    )


async def send_showcase_confirmation(session: AsyncSession, booking_id: str) -> None:
    booking = await _active_showcase(session, booking_id)
    if booking is None:
        return
    business_name = await showcase_business_name(session, booking)
    await asyncio.to_thread(email_service.send_showcase_confirmation_email, booking, business_name)


async def send_showcase_owner_notification(session: AsyncSession, booking_id: str) -> None:
    booking = await _active_showcase(session, booking_id)
    if booking is None:
        return
    business_name = await showcase_business_name(session, booking)
    await asyncio.to_thread(email_service.send_showcase_owner_notification_email, booking, business_name)


async def send_consultation_confirmation(session: AsyncSession, consultation_id: str) -> None:
    consultation = await _active_consultation(session, consultation_id)
    if consultation is None:
        return
    await asyncio.to_thread(email_service.send_consultation_received_email, consultation)


async def send_consultation_owner_notification(session: AsyncSession, consultation_id: str) -> None:
    consultation = await _active_consultation(session, consultation_id)
    if consultation is None:
        return
    await asyncio.to_thread(email_service.send_consultation_owner_notification_email, consultation)


async def send_consultation_rescheduled(session: AsyncSession, consultation_id: str) -> None:
    consultation = await _active_consultation(session, consultation_id)
    if consultation is None:
        return
    await asyncio.to_thread(email_service.send_consultation_rescheduled_email, consultation)


HANDLERS: dict[str, Handler] = {
    OutboxKind.SHOWCASE_CALENDAR_SYNC: sync_showcase_calendar,
    OutboxKind.SHOWCASE_CLIENT_CONFIRMATION: send_showcase_confirmation,
    OutboxKind.SHOWCASE_OWNER_NOTIFICATION: send_showcase_owner_notification,
    OutboxKind.CONSULTATION_CLIENT_CONFIRMATION: send_consultation_confirmation,
    OutboxKind.CONSULTATION_OWNER_NOTIFICATION: send_consultation_owner_notification,
    OutboxKind.CONSULTATION_RESCHEDULED: send_consultation_rescheduled,
}
