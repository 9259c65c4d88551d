"""Lifecycle events rendered as push messages for the other party."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.infrastructure.models import BookingModel, DriverModel, RideModel
from campuspool.infrastructure.repositories import DriverRepository, StudentRepository
from campuspool.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class Announcer:
    """
    Resolves recipients and hands messages to the dispatcher.

    Only called after the transition has committed.  Lookup errors are
    logged here and never reach the requester.
    """

    def __init__(self, session: AsyncSession, dispatcher: Optional[NotificationDispatcher]):
        self.dispatcher = dispatcher
        self.drivers = DriverRepository(session)
        self.students = StudentRepository(session)

    async def booking_created(self, booking: BookingModel) -> None:
        async with self._isolated("new_booking"):
            student = await self.students.get_by_id(booking.student_id)
            driver = await self.drivers.get_by_id(booking.driver_id)
            self._send(
                driver,
                "New Booking Request",
                f"{_name(student, 'A student')} booked {booking.seats_booked} seat(s) "
                f"for your ride from {booking.pickup_location} to {booking.drop_location}",
                "new_booking",
                booking,
            )

    async def booking_cancelled(self, booking: BookingModel) -> None:
        async with self._isolated("booking_cancelled"):
            student = await self.students.get_by_id(booking.student_id)
            driver = await self.drivers.get_by_id(booking.driver_id)
            self._send(
                driver,
                "Booking Cancelled",
                f"{_name(student, 'A student')} cancelled their booking for "
                f"{booking.seats_booked} seat(s) from {booking.pickup_location} "
                f"to {booking.drop_location}",
                "booking_cancelled",
                booking,
            )

    async def booking_confirmed(self, booking: BookingModel) -> None:
        async with self._isolated("booking_confirmed"):
            student = await self.students.get_by_id(booking.student_id)
            driver = await self.drivers.get_by_id(booking.driver_id)
            self._send(
                student,
                "Booking Confirmed!",
                f"Your booking for {booking.seats_booked} seat(s) from "
                f"{booking.pickup_location} to {booking.drop_location} has been "
                f"confirmed by {_name(driver, 'Driver')}",
                "booking_confirmed",
                booking,
            )

    async def booking_rejected(self, booking: BookingModel) -> None:
        async with self._isolated("booking_rejected"):
            student = await self.students.get_by_id(booking.student_id)
            driver = await self.drivers.get_by_id(booking.driver_id)
            self._send(
                student,
                "Booking Rejected",
                f"Your booking request for {booking.seats_booked} seat(s) from "
                f"{booking.pickup_location} to {booking.drop_location} has been "
                f"rejected by {_name(driver, 'Driver')}",
                "booking_rejected",
                booking,
            )

    async def ride_removed(self, ride: RideModel, booking: BookingModel) -> None:
        async with self._isolated("ride_cancelled"):
            student = await self.students.get_by_id(booking.student_id)
            self._send(
                student,
                "Ride Cancelled",
                f"The ride from {booking.pickup_location} to {booking.drop_location} "
                f"was removed by the driver; your booking has been cancelled",
                "ride_cancelled",
                booking,
                ride_id=ride.id,
            )

    async def driver_verified(self, driver: DriverModel) -> None:
        async with self._isolated("driver_verified"):
            self._push(
                driver,
                "Driver Verification Approved! 🎉",
                "Congratulations! Your driver account has been verified. "
                "You can now create rides.",
                {"type": "driver_verified", "driverId": str(driver.id)},
            )

    # ── Internals ────────────────────────────────────────────────────

    def _send(self, recipient, title, body, kind, booking, ride_id=None) -> None:
        self._push(
            recipient,
            title,
            body,
            {
                "type": kind,
                "bookingId": str(booking.id),
                "rideId": str(ride_id if ride_id is not None else booking.ride_id),
            },
        )

    def _push(self, recipient, title: str, body: str, data: dict) -> None:
        if self.dispatcher is None or recipient is None:
            return
        self.dispatcher.notify(recipient.notification_token, title, body, data)

    @asynccontextmanager
    async def _isolated(self, kind: str):
        try:
            yield
        except Exception:
            logger.exception("Could not announce %s", kind)


def _name(person, fallback: str) -> str:
    return getattr(person, "name", None) or fallback
