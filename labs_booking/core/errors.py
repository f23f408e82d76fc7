"""
Domain exception hierarchy for the booking service.

Services raise these; the handlers in ``labs_booking.main`` turn them into
JSON responses carrying ``status_code`` and ``{"detail": message}``.
"""


class BookingError(Exception):
    """Base class for all booking errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed or missing input, rejected before any side effect."""

    status_code = 400


class NotFoundError(BookingError):
    """Token or identifier does not resolve to a known record."""

    status_code = 404


class SlotConflictError(BookingError):
    """The requested slot is already held by a non-cancelled record."""

    status_code = 409


class DownstreamFailure(BookingError):
    """Calendar sync or e-mail delivery failed. Logged and retried, never shown to clients."""

    status_code = 502
