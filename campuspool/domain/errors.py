"""
Error taxonomy shared by the lifecycle services and the API layer.

Every error carries a stable ``code`` (what clients switch on) and the HTTP
status the API maps it to.

* **validation** (400)     -- malformed input, not retryable as-is
* **not-found** (404)      -- fatal to the request
* **authorization** (403)  -- wrong owner, fatal to the request
* **state-conflict** (409) -- seat contention or an invalid lifecycle
  transition; the caller may re-fetch and retry with updated assumptions
"""

from __future__ import annotations

from typing import Optional


class CampusPoolError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ── Validation ────────────────────────────────────────────────────────


class ValidationFailed(CampusPoolError):
    code = "validation-error"


class InvalidRideTime(ValidationFailed):
    code = "invalid-time"


# ── Not found ─────────────────────────────────────────────────────────


class NotFoundError(CampusPoolError):
    code = "not-found"
    status_code = 404


class RideNotFound(NotFoundError):
    code = "ride-not-found"

    def __init__(self, message: str = "Ride not found"):
        super().__init__(message)


class BookingNotFound(NotFoundError):
    def __init__(self, message: str = "Booking not found"):
        super().__init__(message)


class DriverNotFound(NotFoundError):
    code = "driver-not-found"

    def __init__(self, message: str = "Driver not found"):
        super().__init__(message)


# ── Authorization ─────────────────────────────────────────────────────


class Forbidden(CampusPoolError):
    code = "forbidden"
    status_code = 403


# ── State conflicts ───────────────────────────────────────────────────


class StateConflict(CampusPoolError):
    code = "state-conflict"
    status_code = 409


class RideNotConfirmed(StateConflict):
    code = "ride-not-confirmed"

    def __init__(
        self,
        message: str = "Ride is not confirmed yet. Please wait for driver confirmation.",
    ):
        super().__init__(message)


class RideNotOpen(StateConflict):
    code = "ride-not-open"

    def __init__(self, message: str = "Ride is not available for booking"):
        super().__init__(message)


class InsufficientSeats(StateConflict):
    code = "insufficient-seats"

    def __init__(self, available: int, message: Optional[str] = None):
        self.available = available
        super().__init__(message or f"Only {available} seat(s) available")


class InvalidStateTransition(StateConflict):
    """Raised when a status change violates a state machine."""

    code = "invalid-transition"


class AlreadyTerminal(InvalidStateTransition):
    code = "already-terminal"


class AlreadyOpen(StateConflict):
    code = "already-open"

    def __init__(self, message: str = "Ride is already confirmed"):
        super().__init__(message)


class HasConfirmedBookings(StateConflict):
    code = "has-confirmed-bookings"

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"Cannot delete ride. There are {count} confirmed booking(s). "
            "Please cancel the ride instead."
        )


class VerificationUnchanged(StateConflict):
    code = "verification-unchanged"
