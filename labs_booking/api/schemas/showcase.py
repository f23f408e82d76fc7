from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request/response shapes use camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookShowcaseRequest(CamelModel):
    token: str | None = None
    client_name: str | None = None
    client_email: EmailStr | None = None
    client_phone: str | None = None
    meeting_type: str | None = None  # "online" | "physical"
    date: str | None = None  # YYYY-MM-DD
    time: str | None = None  # e.g. "3:30 PM"
    client_timezone: str | None = None
    client_country: str | None = None


class BookingResponse(CamelModel):
    success: bool = True
    booking_id: str
    status: str
    message: str


class ProjectInfoResponse(CamelModel):
    subject_kind: str  # "project" | "order"
    subject_id: str
    business_name: str
    contact_name: str
    email: str
    phone: str
    tier_name: str
    showcase_booking_id: str | None = None
    already_booked: bool


class MeetAccessBooking(CamelModel):
    booking_id: str
    client_name: str
    appointment_date: datetime
    appointment_time: str
    meeting_type: str
    meet_link: str | None = None


class MeetAccessResponse(CamelModel):
    booking: MeetAccessBooking
    can_join: bool
    message: str
    time_remaining: str = ""
    meeting_has_passed: bool = False
    scheduled_time: str = ""
    meeting_end_time: datetime | None = None
    error: str | None = None


class ShowcaseBookingPublic(CamelModel):
    booking_id: str
    subject_kind: str
    project_id: str | None = None
    order_id: str | None = None
    client_name: str
    client_email: str
    client_phone: str
    meeting_type: str
    appointment_date: datetime
    appointment_time: str
    meet_link: str | None = None
    status: str
    client_timezone: str
    client_country: str
    created_at: datetime
