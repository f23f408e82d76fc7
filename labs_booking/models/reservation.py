from datetime import datetime

from sqlmodel import Field, SQLModel

from labs_booking.models.booking import AwareDateTime, utc_now


class SlotReservation(SQLModel, table=True):
    """One row per held slot across consultations and showcase bookings.

    The primary key on ``slot_key`` is what makes two writers racing for the
    same slot fail at commit time, whichever process they run in. The row is
    deleted when its holder is cancelled.
    """

    __tablename__ = "slot_reservations"
    slot_key: str = Field(primary_key=True)  # YYYY-MM-DDTHH:MM, business timezone
    holder_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=AwareDateTime)
