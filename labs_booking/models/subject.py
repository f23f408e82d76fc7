from datetime import datetime

from sqlmodel import Field, SQLModel

from labs_booking.models.booking import AwareDateTime, utc_now


class BuildProject(SQLModel, table=True):
    __tablename__ = "build_projects"
    id: str = Field(primary_key=True)
    consultation_id: str = ""
    invoice_id: str = ""
    business_name: str
    contact_name: str
    email: str
    phone: str = ""
    tier_name: str = ""
    total_amount: float = 0
    currency: str = "KES"
    showcase_booking_token: str | None = Field(default=None, unique=True, index=True)
    showcase_booking_id: str | None = None
    # "showcase meeting scheduled" milestone
    showcase_scheduled_at: datetime | None = Field(default=None, sa_type=AwareDateTime)
    showcase_scheduled_note: str | None = None
    updated_at: datetime = Field(default_factory=utc_now, sa_type=AwareDateTime)


class WebServiceOrder(SQLModel, table=True):
    __tablename__ = "web_service_orders"
    id: str = Field(primary_key=True)
    email: str
    name: str = ""
    business_name: str = ""
    phone_number: str = ""
    total: float = 0
    showcase_booking_token: str | None = Field(default=None, unique=True, index=True)
    showcase_booking_id: str | None = None
    meeting_link: str = ""
    created_at: datetime = Field(default_factory=utc_now, sa_type=AwareDateTime)
