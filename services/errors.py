class BookingError(Exception):
    """Base class for failures surfaced to the user by the booking flow."""

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        out = {"error": self.message, "code": self.code}
        if self.details:
            out["details"] = self.details
        return out


class ValidationFailure(BookingError):
    """A required selection is missing or a policy gate refused the request."""
    status_code = 400
    code = "VALIDATION_FAILURE"


class SeatNotFound(BookingError):
    status_code = 404
    code = "SEAT_NOT_FOUND"


class Conflict(BookingError):
    """Another booking already holds the seat (or the student) for that session."""
    status_code = 409
    code = "CONFLICT"


class TransportFailure(BookingError):
    """The database could not be reached; the caller may retry by hand."""
    status_code = 503
    code = "TRANSPORT_FAILURE"
