"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    PENDING = "pending"
    OPEN = "open"
    FULL = "full"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# State machine: maps current status -> set of valid next statuses.
# OPEN <-> FULL is driven only by the seat ledger.
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.OPEN, RideStatus.CANCELLED},
    RideStatus.OPEN: {RideStatus.FULL, RideStatus.CANCELLED, RideStatus.COMPLETED},
    RideStatus.FULL: {RideStatus.OPEN, RideStatus.CANCELLED, RideStatus.COMPLETED},
    RideStatus.CANCELLED: set(),
    RideStatus.COMPLETED: set(),
}

# Statuses a driver may set directly on their own ride.
DRIVER_SETTABLE_RIDE_STATUSES = frozenset({RideStatus.CANCELLED, RideStatus.COMPLETED})

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.REJECTED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.CANCELLED,
        BookingStatus.REJECTED,
        BookingStatus.COMPLETED,
    },
    BookingStatus.CANCELLED: set(),
    BookingStatus.REJECTED: set(),
    BookingStatus.COMPLETED: set(),
}

TERMINAL_BOOKING_STATUSES = frozenset(
    status for status, nxt in BOOKING_TRANSITIONS.items() if not nxt
)

# Bookings in these states have their seats charged against the ride.
SEAT_HOLDING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
