from datetime import datetime

from sqlmodel import Field, SQLModel

from labs_booking.models.booking import AwareDateTime, utc_now


class OutboxKind:
    SHOWCASE_CALENDAR_SYNC = "showcase.calendar_sync"
    SHOWCASE_CLIENT_CONFIRMATION = "showcase.client_confirmation"
    SHOWCASE_OWNER_NOTIFICATION = "showcase.owner_notification"
    CONSULTATION_CLIENT_CONFIRMATION = "consultation.client_confirmation"
    CONSULTATION_OWNER_NOTIFICATION = "consultation.owner_notification"
    CONSULTATION_RESCHEDULED = "consultation.rescheduled"


class OutboxMessage(SQLModel, table=True):
    """A side effect to run after a booking commits (calendar sync, e-mail)."""

    __tablename__ = "outbox_messages"
    id: int | None = Field(default=None, primary_key=True)
    kind: str = Field(index=True)
    ref_id: str = Field(index=True)  # booking or consultation id
    attempts: int = 0
    next_attempt_at: datetime = Field(default_factory=utc_now, index=True, sa_type=AwareDateTime)
    last_error: str | None = None
    delivered_at: datetime | None = Field(default=None, sa_type=AwareDateTime)
    failed_at: datetime | None = Field(default=None, sa_type=AwareDateTime)  # gave up after max attempts
    created_at: datetime = Field(default_factory=utc_now, sa_type=AwareDateTime)
