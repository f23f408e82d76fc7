from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

# Every instant is stored as aware UTC. SQLite drops the offset on read;
# services/slot_time.as_utc restores it.
AwareDateTime = DateTime(timezone=True)


def utc_now() -> datetime:
    return datetime.now(UTC)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class MeetingType(str, Enum):
    ONLINE = "online"
    PHYSICAL = "physical"


def is_cancelled(status: str | None) -> bool:
    """Any status other than cancelled (pending included) keeps a slot held."""
    return (status or "").strip().lower() == BookingStatus.CANCELLED.value


class Consultation(SQLModel, table=True):
    __tablename__ = "consultations"
    id: str = Field(primary_key=True)
    client_name: str
    client_email: str = Field(index=True)
    client_phone: str = ""
    business_name: str = ""
    meeting_type: str = MeetingType.ONLINE.value
    preferred_date: str = Field(index=True)  # YYYY-MM-DD in business timezone
    preferred_time: str  # label as selected, e.g. "9:30 AM"
    status: str = BookingStatus.PENDING.value
    # Slot held before the last reschedule
    previous_date: str | None = None
    previous_time: str | None = None
    created_at: datetime = Field(default_factory=utc_now, sa_type=AwareDateTime)


class ShowcaseBooking(SQLModel, table=True):
    __tablename__ = "showcase_bookings"
    id: str = Field(primary_key=True)
    subject_kind: str  # "project" or "order"
    project_id: str | None = Field(default=None, index=True)
    order_id: str | None = Field(default=None, index=True)
    consultation_id: str = ""
    client_name: str
    client_email: str
    client_phone: str = ""
    meeting_type: str = MeetingType.ONLINE.value
    appointment_at: datetime = Field(index=True, sa_type=AwareDateTime)  # UTC instant
    appointment_time: str  # label as selected
    meet_link: str | None = None
    status: str = BookingStatus.CONFIRMED.value
    client_timezone: str = "Africa/Nairobi"
    client_country: str = "Unknown"
    created_at: datetime = Field(default_factory=utc_now, sa_type=AwareDateTime)


class ShowcaseBookingCreate(SQLModel):
    token: str | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    meeting_type: str | None = None
    date: str | None = None  # YYYY-MM-DD
    time: str | None = None  # label, e.g. "3:30 PM"
    client_timezone: str | None = None
    client_country: str | None = None


class ConsultationReschedule(SQLModel):
    preferred_date: str | None = None
    preferred_time: str | None = None


class ConsultationCreate(SQLModel):
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    business_name: str | None = None
    meeting_type: str | None = None
    preferred_date: str | None = None
    preferred_time: str | None = None
