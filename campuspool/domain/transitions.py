"""Central validation of ride and booking status changes."""

from __future__ import annotations

from .enums import (
    BOOKING_TRANSITIONS,
    RIDE_TRANSITIONS,
    BookingStatus,
    RideStatus,
)
from .errors import InvalidStateTransition


def assert_ride_transition(current: RideStatus, target: RideStatus) -> None:
    """Raise unless *current* -> *target* is listed in the ride table."""
    current, target = RideStatus(current), RideStatus(target)
    if target not in RIDE_TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(
            f"Cannot transition ride from {current.value} to {target.value}"
        )


def assert_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise unless *current* -> *target* is listed in the booking table."""
    current, target = BookingStatus(current), BookingStatus(target)
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(
            f"Cannot transition booking from {current.value} to {target.value}"
        )


def derive_ride_status(
    status: RideStatus, available_seats: int, confirmed: bool
) -> RideStatus:
    """
    Status a ride should carry given its seat count.

    Terminal and unconfirmed rides are left alone; otherwise ``full`` iff no
    seats remain.
    """
    status = RideStatus(status)
    if status in (RideStatus.CANCELLED, RideStatus.COMPLETED, RideStatus.PENDING):
        return status
    if not confirmed:
        return status
    return RideStatus.FULL if available_seats == 0 else RideStatus.OPEN
