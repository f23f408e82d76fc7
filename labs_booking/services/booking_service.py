import logging
import secrets
import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from labs_booking.core.config import settings
from labs_booking.core.errors import NotFoundError, SlotConflictError, ValidationError
from labs_booking.models.booking import (
    BookingStatus,
    Consultation,
    ConsultationCreate,
    ConsultationReschedule,
    MeetingType,
    ShowcaseBooking,
    ShowcaseBookingCreate,
    is_cancelled,
)
from labs_booking.models.outbox import OutboxKind
from labs_booking.models.reservation import SlotReservation
from labs_booking.services.conflict_service import CONFLICT_MESSAGE, ensure_slot_free
from labs_booking.services.outbox_service import new_message
from labs_booking.services.slot_locks import SlotLockRegistry, slot_locks
from labs_booking.services.slot_time import CanonicalSlot, assemble_slot
from labs_booking.services.subject_service import OrderSubject, ProjectSubject, link_booking, resolve_subject

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields"


def new_record_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value or not value.strip()]
    if missing:
        raise ValidationError(f"{MISSING_FIELDS_MESSAGE}: {', '.join(missing)}")


def resolve_meeting_type(value: str | None) -> str:
    if not value or not value.strip():
        return MeetingType.ONLINE.value
    normalized = value.strip().lower()
    if normalized not in (MeetingType.ONLINE.value, MeetingType.PHYSICAL.value):
        raise ValidationError(f"Invalid meeting type: {value!r}")
    return normalized


def resolve_client_timezone(value: str | None) -> str:
    """Client timezone is display-only; unknown names fall back to the business timezone."""
    if not value or not value.strip():
        return settings.business_timezone
    name = value.strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown client timezone %r, using %s", name, settings.business_timezone)
        return settings.business_timezone
    return name


async def _release_reservation(session: AsyncSession, holder_id: str) -> None:
    await session.execute(delete(SlotReservation).where(SlotReservation.holder_id == holder_id))


async def _drop_stale_reservation(session: AsyncSession, slot_key: str) -> None:
    """Remove a reservation whose holder was cancelled without releasing it.

    A reservation with a live holder means another writer got there first.
    """
    reservation = await session.get(SlotReservation, slot_key)
    if reservation is None:
        return
    holder = await session.get(ShowcaseBooking, reservation.holder_id)
    if holder is None:
        holder = await session.get(Consultation, reservation.holder_id)
    if holder is None or is_cancelled(holder.status):
        logger.warning("Releasing stale reservation %s held by %s", slot_key, reservation.holder_id)
        await session.delete(reservation)
        await session.flush()
        return
    raise SlotConflictError(CONFLICT_MESSAGE)


async def commit_slot(
    session: AsyncSession,
    slot: CanonicalSlot,
    holder_id: str,
    rows: list[SQLModel],
    tz: ZoneInfo,
    locks: SlotLockRegistry = slot_locks,
    replacing: bool = False,
) -> None:
    """Check the slot is free and persist ``rows`` with its reservation, atomically.

    The per-slot lock serializes writers in this process; the unique
    reservation key rejects writers from any other process at commit time.
    With ``replacing``, ``holder_id`` is moving here: it does not conflict with
    itself and its previous reservation is released in the same transaction.
    """
    async with locks.hold(slot.key):
        await ensure_slot_free(session, slot, tz, exclude_id=holder_id if replacing else None)
        if replacing:
            await _release_reservation(session, holder_id)
        await _drop_stale_reservation(session, slot.key)
        session.add(SlotReservation(slot_key=slot.key, holder_id=holder_id))
        for row in rows:
            session.add(row)
        try:
            await session.commit()
        except IntegrityError as e:
            await session.rollback()
            logger.info("Slot %s taken concurrently, rejecting %s", slot.key, holder_id)
            raise SlotConflictError(CONFLICT_MESSAGE) from e


async def book_showcase_meeting(
    session: AsyncSession,
    data: ShowcaseBookingCreate,
    tz: ZoneInfo | None = None,
) -> ShowcaseBooking:
    _require(
        token=data.token,
        client_name=data.client_name,
        client_email=data.client_email,
        date=data.date,
        time=data.time,
    )
    tz = tz or settings.business_tz
    slot = assemble_slot(data.date, data.time, tz)
    meeting_type = resolve_meeting_type(data.meeting_type)
    subject = await resolve_subject(session, data.token.strip())

    meet_link = None
    if meeting_type == MeetingType.ONLINE.value and settings.google_meet_room.strip():
        meet_link = settings.google_meet_room.strip()

    booking = ShowcaseBooking(
        id=new_record_id("showcase"),
        subject_kind=subject.kind,
        project_id=subject.subject_id if isinstance(subject, ProjectSubject) else None,
        order_id=subject.subject_id if isinstance(subject, OrderSubject) else None,
        consultation_id=subject.consultation_id,
        client_name=data.client_name.strip(),
        client_email=data.client_email.strip(),
        client_phone=(data.client_phone or "").strip() or subject.phone,
        meeting_type=meeting_type,
        appointment_at=slot.starts_at_utc,
        appointment_time=slot.label,
        meet_link=meet_link,
        status=BookingStatus.CONFIRMED.value,
        client_timezone=resolve_client_timezone(data.client_timezone),
        client_country=(data.client_country or "").strip() or "Unknown",
    )
    note = f"Showcase meeting scheduled for {slot.date_str} at {slot.label} ({meeting_type})"
    linked = link_booking(subject, booking, note)
    await commit_slot(
        session,
        slot,
        booking.id,
        [
            booking,
            linked,
            new_message(OutboxKind.SHOWCASE_CALENDAR_SYNC, booking.id),
            new_message(OutboxKind.SHOWCASE_CLIENT_CONFIRMATION, booking.id),
            new_message(OutboxKind.SHOWCASE_OWNER_NOTIFICATION, booking.id),
        ],
        tz,
    )
    logger.info("Showcase meeting %s booked for %s %s at %s", booking.id, subject.kind, subject.subject_id, slot.key)
    return booking


async def book_consultation(
    session: AsyncSession,
    data: ConsultationCreate,
    tz: ZoneInfo | None = None,
) -> Consultation:
    _require(
        client_name=data.client_name,
        client_email=data.client_email,
        preferred_date=data.preferred_date,
        preferred_time=data.preferred_time,
    )
    tz = tz or settings.business_tz
    slot = assemble_slot(data.preferred_date, data.preferred_time, tz)
    consultation = Consultation(
        id=new_record_id("consultation"),
        client_name=data.client_name.strip(),
        client_email=data.client_email.strip(),
        client_phone=(data.client_phone or "").strip(),
        business_name=(data.business_name or "").strip(),
        meeting_type=resolve_meeting_type(data.meeting_type),
        preferred_date=slot.date_str,
        preferred_time=slot.label,
        status=BookingStatus.PENDING.value,
    )
    await commit_slot(
        session,
        slot,
        consultation.id,
        [
            consultation,
            new_message(OutboxKind.CONSULTATION_CLIENT_CONFIRMATION, consultation.id),
            new_message(OutboxKind.CONSULTATION_OWNER_NOTIFICATION, consultation.id),
        ],
        tz,
    )
    logger.info("Consultation %s requested for %s", consultation.id, slot.key)
    return consultation


async def cancel_showcase_booking(session: AsyncSession, booking_id: str) -> ShowcaseBooking:
    booking = await session.get(ShowcaseBooking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    if not is_cancelled(booking.status):
        booking.status = BookingStatus.CANCELLED.value
        session.add(booking)
        await _release_reservation(session, booking.id)
        await session.flush()
        logger.info("Showcase meeting %s cancelled", booking.id)
    return booking


async def cancel_consultation(session: AsyncSession, consultation_id: str) -> Consultation:
    consultation = await session.get(Consultation, consultation_id)
    if consultation is None:
        raise NotFoundError("Consultation not found")
    if not is_cancelled(consultation.status):
        consultation.status = BookingStatus.CANCELLED.value
        session.add(consultation)
        await _release_reservation(session, consultation.id)
        await session.flush()
        logger.info("Consultation %s cancelled", consultation.id)
    return consultation


async def reschedule_consultation(
    session: AsyncSession,
    consultation_id: str,
    data: ConsultationReschedule,
    tz: ZoneInfo | None = None,
) -> Consultation:
    """Move a consultation to a new slot and mark it confirmed.

    The old slot is released and the new one claimed in one transaction; a
    held target slot leaves the consultation where it was.
    """
    _require(preferred_date=data.preferred_date, preferred_time=data.preferred_time)
    tz = tz or settings.business_tz
    slot = assemble_slot(data.preferred_date, data.preferred_time, tz)
    consultation = await session.get(Consultation, consultation_id)
    if consultation is None:
        raise NotFoundError("Consultation not found")

    previous = (consultation.preferred_date, consultation.preferred_time)
    consultation.previous_date, consultation.previous_time = previous
    consultation.preferred_date = slot.date_str
    consultation.preferred_time = slot.label
    consultation.status = BookingStatus.CONFIRMED.value
    try:
        await commit_slot(
            session,
            slot,
            consultation.id,
            [consultation, new_message(OutboxKind.CONSULTATION_RESCHEDULED, consultation.id)],
            tz,
            replacing=True,
        )
    except SlotConflictError:
        await session.rollback()
        raise
    logger.info("Consultation %s moved from %s %s to %s", consultation.id, previous[0], previous[1], slot.key)
    return consultation


async def get_showcase_booking(session: AsyncSession, booking_id: str) -> ShowcaseBooking:
    booking = await session.get(ShowcaseBooking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


async def list_showcase_bookings(
    session: AsyncSession, include_cancelled: bool = True
) -> list[ShowcaseBooking]:
    q = select(ShowcaseBooking).order_by(ShowcaseBooking.appointment_at)
    if not include_cancelled:
        q = q.where(ShowcaseBooking.status != BookingStatus.CANCELLED.value)
    result = await session.execute(q)
    return list(result.scalars().all())
