from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from labs_booking.api.deps import get_session
from labs_booking.api.schemas.slots import AvailableSlotsResponse, SlotInfo
from labs_booking.core.config import settings
from labs_booking.services.slot_service import get_available_slots_for_date

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Return the slot grid for the given date (business timezone). Each slot has label, start, end, and available."""
    slots_with_availability = await get_available_slots_for_date(session, date_param)
    slot_infos = [
        SlotInfo(
            label=s.label,
            start=s.starts_at,
            end=s.starts_at + timedelta(minutes=settings.meeting_duration_minutes),
            available=avail,
        )
        for s, avail in slots_with_availability
    ]
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        timezone=settings.business_timezone,
        slots=slot_infos,
    )
