from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from labs_booking.api.deps import get_session, require_admin
from labs_booking.api.routes.consultations import to_public as consultation_to_public
from labs_booking.api.schemas.consultation import ConsultationPublic
from labs_booking.api.schemas.showcase import ShowcaseBookingPublic
from labs_booking.models.booking import ShowcaseBooking
from labs_booking.services.booking_service import (
    cancel_consultation,
    cancel_showcase_booking,
    list_showcase_bookings,
)
from labs_booking.services.slot_time import as_utc

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _to_public(b: ShowcaseBooking) -> ShowcaseBookingPublic:
    return ShowcaseBookingPublic(
        booking_id=b.id,
        subject_kind=b.subject_kind,
        project_id=b.project_id,
        order_id=b.order_id,
        client_name=b.client_name,
        client_email=b.client_email,
        client_phone=b.client_phone,
        meeting_type=b.meeting_type,
        appointment_date=as_utc(b.appointment_at),
        appointment_time=b.appointment_time,
        meet_link=b.meet_link,
        status=b.status,
        client_timezone=b.client_timezone,
        client_country=b.client_country,
        created_at=as_utc(b.created_at),
    )


@router.get("/showcase-bookings", response_model=list[ShowcaseBookingPublic])
async def list_bookings(
    include_cancelled: bool = Query(True, alias="includeCancelled"),
    session: AsyncSession = Depends(get_session),
) -> list[ShowcaseBookingPublic]:
    bookings = await list_showcase_bookings(session, include_cancelled=include_cancelled)
    return [_to_public(b) for b in bookings]


@router.post("/showcase-bookings/{booking_id}/cancel", response_model=ShowcaseBookingPublic)
async def cancel_booking(
    booking_id: str,
    session: AsyncSession = Depends(get_session),
) -> ShowcaseBookingPublic:
    booking = await cancel_showcase_booking(session, booking_id)
    return _to_public(booking)


@router.post("/consultations/{consultation_id}/cancel", response_model=ConsultationPublic)
async def cancel_consultation_request(
    consultation_id: str,
    session: AsyncSession = Depends(get_session),
) -> ConsultationPublic:
    consultation = await cancel_consultation(session, consultation_id)
    return consultation_to_public(consultation)
