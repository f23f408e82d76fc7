import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labs_booking.api.deps import get_session, get_session_maker
from labs_booking.api.schemas.showcase import (
    BookingResponse,
    BookShowcaseRequest,
    MeetAccessBooking,
    MeetAccessResponse,
    ProjectInfoResponse,
)
from labs_booking.core.errors import ValidationError
from labs_booking.models.booking import MeetingType, ShowcaseBooking, ShowcaseBookingCreate
from labs_booking.services.booking_service import book_showcase_meeting, get_showcase_booking
from labs_booking.services.meet_access_service import evaluate_meet_access
from labs_booking.services.outbox_service import run_dispatch
from labs_booking.services.slot_time import as_utc
from labs_booking.services.subject_service import resolve_subject

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/labs/showcase", tags=["showcase"])


def _meet_booking(b: ShowcaseBooking) -> MeetAccessBooking:
    return MeetAccessBooking(
        booking_id=b.id,
        client_name=b.client_name,
        appointment_date=as_utc(b.appointment_at),
        appointment_time=b.appointment_time,
        meeting_type=b.meeting_type,
        meet_link=b.meet_link,
    )


@router.post("/book", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_showcase(
    body: BookShowcaseRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> BookingResponse:
    data = ShowcaseBookingCreate(
        token=body.token,
        client_name=body.client_name,
        client_email=str(body.client_email) if body.client_email else None,
        client_phone=body.client_phone,
        meeting_type=body.meeting_type,
        date=body.date,
        time=body.time,
        client_timezone=body.client_timezone,
        client_country=body.client_country,
    )
    booking = await book_showcase_meeting(session, data)
    # Calendar sync and e-mails run after the response; failures stay in the outbox for retry
    background_tasks.add_task(run_dispatch, session_maker)
    return BookingResponse(
        booking_id=booking.id,
        status=booking.status,
        message="Showcase meeting booked successfully",
    )


@router.get("/project-info/{token}", response_model=ProjectInfoResponse)
async def project_info(
    token: str,
    session: AsyncSession = Depends(get_session),
) -> ProjectInfoResponse:
    """What the booking page shows for a token: who the meeting is for and whether it is already booked."""
    subject = await resolve_subject(session, token)
    return ProjectInfoResponse(
        subject_kind=subject.kind,
        subject_id=subject.subject_id,
        business_name=subject.business_name,
        contact_name=subject.contact_name,
        email=subject.email,
        phone=subject.phone,
        tier_name=subject.tier_name,
        showcase_booking_id=subject.showcase_booking_id,
        already_booked=bool(subject.showcase_booking_id),
    )


@router.get("/meet-access", response_model=MeetAccessResponse)
async def meet_access(
    booking_id: str | None = Query(None, alias="bookingId"),
    session: AsyncSession = Depends(get_session),
) -> MeetAccessResponse:
    if not booking_id:
        raise ValidationError("Booking ID is required")
    booking = await get_showcase_booking(session, booking_id)
    if booking.meeting_type != MeetingType.ONLINE.value:
        raise ValidationError("This is not an online meeting")
    if not booking.meet_link:
        return MeetAccessResponse(
            booking=_meet_booking(booking),
            can_join=False,
            error="Meeting link not available",
            message="Meeting link is being set up. Please contact us if you need assistance.",
        )
    access = evaluate_meet_access(booking)
    return MeetAccessResponse(
        booking=_meet_booking(booking),
        can_join=access.can_join,
        message=access.message,
        time_remaining=access.time_remaining,
        meeting_has_passed=access.meeting_has_passed,
        scheduled_time=access.scheduled_time,
        meeting_end_time=access.meeting_end,
    )
