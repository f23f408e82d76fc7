from datetime import datetime

from labs_booking.api.schemas.showcase import CamelModel


class SlotInfo(CamelModel):
    label: str
    start: datetime
    end: datetime
    available: bool


class AvailableSlotsResponse(CamelModel):
    date: str  # YYYY-MM-DD
    timezone: str
    slots: list[SlotInfo]
