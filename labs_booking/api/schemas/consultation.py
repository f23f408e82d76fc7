from pydantic import EmailStr

from labs_booking.api.schemas.showcase import CamelModel


class BookConsultationRequest(CamelModel):
    client_name: str | None = None
    client_email: EmailStr | None = None
    client_phone: str | None = None
    business_name: str | None = None
    meeting_type: str | None = None
    preferred_date: str | None = None  # YYYY-MM-DD
    preferred_time: str | None = None  # e.g. "9:30 AM"


class ConsultationPublic(CamelModel):
    consultation_id: str
    client_name: str
    client_email: str
    preferred_date: str
    preferred_time: str
    meeting_type: str
    status: str


class RebookConsultationRequest(CamelModel):
    preferred_date: str | None = None  # YYYY-MM-DD
    preferred_time: str | None = None
