from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labs_booking.api.deps import get_session, get_session_maker
from labs_booking.api.schemas.consultation import (
    BookConsultationRequest,
    ConsultationPublic,
    RebookConsultationRequest,
)
from labs_booking.models.booking import Consultation, ConsultationCreate, ConsultationReschedule
from labs_booking.services.booking_service import book_consultation, reschedule_consultation
from labs_booking.services.outbox_service import run_dispatch

router = APIRouter(prefix="/labs/consultations", tags=["consultations"])


def to_public(c: Consultation) -> ConsultationPublic:
    return ConsultationPublic(
        consultation_id=c.id,
        client_name=c.client_name,
        client_email=c.client_email,
        preferred_date=c.preferred_date,
        preferred_time=c.preferred_time,
        meeting_type=c.meeting_type,
        status=c.status,
    )


@router.post("", response_model=ConsultationPublic, status_code=status.HTTP_201_CREATED)
async def request_consultation(
    body: BookConsultationRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> ConsultationPublic:
    data = ConsultationCreate(
        client_name=body.client_name,
        client_email=str(body.client_email) if body.client_email else None,
        client_phone=body.client_phone,
        business_name=body.business_name,
        meeting_type=body.meeting_type,
        preferred_date=body.preferred_date,
        preferred_time=body.preferred_time,
    )
    consultation = await book_consultation(session, data)
    background_tasks.add_task(run_dispatch, session_maker)
    return to_public(consultation)


@router.post("/{consultation_id}/rebook", response_model=ConsultationPublic)
async def rebook_consultation(
    consultation_id: str,
    body: RebookConsultationRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> ConsultationPublic:
    """Move a consultation to another free slot; it comes back confirmed."""
    data = ConsultationReschedule(preferred_date=body.preferred_date, preferred_time=body.preferred_time)
    consultation = await reschedule_consultation(session, consultation_id, data)
    background_tasks.add_task(run_dispatch, session_maker)
    return to_public(consultation)
