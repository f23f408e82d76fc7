from labs_booking.models.booking import (
    AwareDateTime,
    BookingStatus,
    Consultation,
    ConsultationCreate,
    ConsultationReschedule,
    MeetingType,
    ShowcaseBooking,
    ShowcaseBookingCreate,
    is_cancelled,
    utc_now,
)
from labs_booking.models.outbox import OutboxKind, OutboxMessage
from labs_booking.models.reservation import SlotReservation
from labs_booking.models.subject import BuildProject, WebServiceOrder

__all__ = [
    "AwareDateTime",
    "BookingStatus",
    "BuildProject",
    "Consultation",
    "ConsultationCreate",
    "ConsultationReschedule",
    "MeetingType",
    "OutboxKind",
    "OutboxMessage",
    "ShowcaseBooking",
    "ShowcaseBookingCreate",
    "SlotReservation",
    "WebServiceOrder",
    "is_cancelled",
    "utc_now",
]
