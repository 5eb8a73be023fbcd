# backend/sloty/services/slots/errors.py
"""
Scheduling errors.

Each error carries a stable `code` and the HTTP status the routers answer
with, so the booking UI can tell "pick another time" (409) from
"try again" (503) from "fix your input" (422).
"""


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    code = "scheduling_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message, **self.details}


class InvalidScheduleData(SchedulingError):
    """Stored working hours / closures / exceptions are malformed."""

    code = "invalid_schedule_data"
    http_status = 500


class SlotConflict(SchedulingError):
    """The slot is taken (or no longer offered)."""

    code = "slot_conflict"
    http_status = 409


class CapacityExceeded(SchedulingError):
    """Group slot is full."""

    code = "capacity_exceeded"
    http_status = 409


class ReservationTimeout(SchedulingError):
    """Could not acquire the reservation lock in time. Nothing was written."""

    code = "reservation_timeout"
    http_status = 503
    retryable = True


class OutOfPolicyWindow(SchedulingError):
    """Requested start is inside the notice period or beyond the horizon."""

    code = "out_of_policy_window"
    http_status = 422


class NotFound(SchedulingError):
    """Service, provider or location is unknown, inactive or not assigned."""

    code = "not_found"
    http_status = 404
