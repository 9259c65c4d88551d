"""
Booking Lifecycle
=================

The authoritative booking state machine.

    create ──> PENDING ──confirm──> CONFIRMED
                  │                     │
                  ├──cancel / reject────┴──> CANCELLED | REJECTED
                                            (seats released exactly once)

Seats are charged at creation, not at driver confirmation, so both exits
from PENDING and CONFIRMED give seats back.  Each transition is committed by
a conditional UPDATE on the observed ``booking_status``: of two concurrent
transitions on one booking only one matches, and the loser re-reads and
reports the state that won.  That is also what makes release happen once.

Every operation is one transaction; notifications go out after commit.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.domain.enums import (
    SEAT_HOLDING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    BookingStatus,
    RideStatus,
)
from campuspool.domain.errors import (
    AlreadyTerminal,
    BookingNotFound,
    Forbidden,
    InsufficientSeats,
    InvalidStateTransition,
    RideNotConfirmed,
    RideNotFound,
    RideNotOpen,
    ValidationFailed,
)
from campuspool.domain.ride_time import combine_ride_datetime
from campuspool.domain.transitions import assert_booking_transition
from campuspool.infrastructure.models import BookingModel, RideModel
from campuspool.infrastructure.repositories import (
    BookingRepository,
    RideRepository,
    StudentRepository,
)
from campuspool.services.announcements import Announcer
from campuspool.services.notifications import NotificationDispatcher
from campuspool.services.ride_lifecycle import RideLifecycle
from campuspool.services.seat_ledger import SeatLedger

logger = logging.getLogger(__name__)


def classify_reservation_failure(ride: Optional[RideModel], seats: int) -> Exception:
    """Turn a ride snapshot into the reason a reservation cannot succeed."""
    if ride is None:
        return RideNotFound()
    if not ride.confirmed:
        return RideNotConfirmed()
    if ride.status == RideStatus.FULL:
        return InsufficientSeats(ride.available_seats)
    if ride.status != RideStatus.OPEN:
        return RideNotOpen()
    return InsufficientSeats(ride.available_seats)


class BookingLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.session = session
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.students = StudentRepository(session)
        self.ledger = SeatLedger(session)
        self.ride_lifecycle = RideLifecycle(session, dispatcher)
        self.announcer = Announcer(session, dispatcher)

    # ── Transitions ──────────────────────────────────────────────────

    async def create_booking(
        self, ride_id: int, student_id: int, seats_booked: int
    ) -> BookingModel:
        if isinstance(seats_booked, bool) or not isinstance(seats_booked, int) or seats_booked < 1:
            raise ValidationFailed("Must book at least 1 seat")
        if await self.students.get_by_id(student_id) is None:
            raise Forbidden("Student account not found")

        ride = await self.rides.get_by_id(ride_id)
        if (
            ride is None
            or not ride.confirmed
            or ride.status != RideStatus.OPEN
            or ride.available_seats < seats_booked
        ):
            raise classify_reservation_failure(ride, seats_booked)

        ride_datetime = combine_ride_datetime(ride.date, ride.time)

        reserved = await self.ledger.reserve(ride_id, seats_booked)
        if reserved is None:
            # The store refused the decrement; re-read to say why.
            current = await self.rides.get_by_id(ride_id, refresh=True)
            error = classify_reservation_failure(current, seats_booked)
            await self.session.rollback()
            logger.info(
                "Booking of %d seat(s) on ride %s by student %s refused: %s",
                seats_booked, ride_id, student_id, getattr(error, "code", error),
            )
            raise error

        await self.ride_lifecycle.recompute_after_seat_change(ride_id)

        booking = await self.bookings.create_booking(
            ride_id=reserved.id,
            student_id=student_id,
            driver_id=reserved.driver_id,
            seats_booked=seats_booked,
            pickup_location=reserved.pickup_location,
            drop_location=reserved.drop_location,
            ride_datetime=ride_datetime,
        )
        await self.session.commit()
        logger.info(
            "Booking %s: student %s reserved %d seat(s) on ride %s (%d left)",
            booking.id, student_id, seats_booked, ride_id, reserved.available_seats,
        )

        booking = await self.bookings.get_by_id(booking.id, refresh=True)
        await self.announcer.booking_created(booking)
        return booking

    async def cancel_booking(self, booking_id: int, requester_id: int) -> BookingModel:
        """Student withdraws; seats go back to the ride."""
        booking = await self._get(booking_id)
        if booking.student_id != requester_id:
            raise Forbidden("Not authorized to cancel this booking")
        if booking.booking_status in TERMINAL_BOOKING_STATUSES:
            raise AlreadyTerminal(
                f"Booking is already {booking.booking_status.value}"
            )

        booking = await self._transition(
            booking, BookingStatus.CANCELLED, conflict=AlreadyTerminal
        )
        await self.announcer.booking_cancelled(booking)
        return booking

    async def confirm_booking(self, booking_id: int, requester_id: int) -> BookingModel:
        """Driver accepts a pending booking.  Seats are already held."""
        booking = await self._get(booking_id)
        if booking.driver_id != requester_id:
            raise Forbidden("Not authorized to confirm this booking")

        booking = await self._transition(booking, BookingStatus.CONFIRMED)
        await self.announcer.booking_confirmed(booking)
        return booking

    async def reject_booking(self, booking_id: int, requester_id: int) -> BookingModel:
        """Driver turns a booking down; held seats go back to the ride."""
        booking = await self._get(booking_id)
        if booking.driver_id != requester_id:
            raise Forbidden("Not authorized to reject this booking")

        booking = await self._transition(booking, BookingStatus.REJECTED)
        await self.announcer.booking_rejected(booking)
        return booking

    # ── Queries ──────────────────────────────────────────────────────

    async def get(
        self,
        booking_id: int,
        *,
        student_id: Optional[int] = None,
        driver_id: Optional[int] = None,
    ) -> BookingModel:
        """A booking, visible only to its student and its driver."""
        booking = await self._get(booking_id)
        if not (
            (student_id is not None and booking.student_id == student_id)
            or (driver_id is not None and booking.driver_id == driver_id)
        ):
            raise Forbidden("Not authorized to view this booking")
        return booking

    async def list_for_student(
        self, student_id: int, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[BookingModel], int]:
        return await self.bookings.list_for_student(student_id, offset=offset, limit=limit)

    async def list_for_driver(
        self, driver_id: int, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[BookingModel], int]:
        return await self.bookings.list_for_driver(driver_id, offset=offset, limit=limit)

    # ── Internals ────────────────────────────────────────────────────

    async def _get(self, booking_id: int) -> BookingModel:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFound()
        return booking

    async def _transition(
        self,
        booking: BookingModel,
        target: BookingStatus,
        conflict: type[InvalidStateTransition] = InvalidStateTransition,
    ) -> BookingModel:
        prior = BookingStatus(booking.booking_status)
        assert_booking_transition(prior, target)

        if not await self.bookings.transition_if(booking.id, prior, target):
            # Another transition committed first; report the state it left.
            current = await self.bookings.get_by_id(booking.id, refresh=True)
            winner = current.booking_status if current is not None else None
            await self.session.rollback()
            if winner is None:
                raise BookingNotFound()
            raise conflict(f"Booking is already {winner.value}")

        if prior in SEAT_HOLDING_STATUSES and target not in SEAT_HOLDING_STATUSES:
            await self.ledger.release(booking.ride_id, booking.seats_booked)

        await self.session.commit()
        logger.info(
            "Booking %s: %s -> %s", booking.id, prior.value, target.value
        )
        return await self.bookings.get_by_id(booking.id, refresh=True)
