"""
Ride lifecycle: keeps ``status`` consistent with ``available_seats`` and
``confirmed``, and owns the driver-side ride operations.

    PENDING --confirm--> OPEN <--seat ledger--> FULL
       |                  |                      |
       +------------------+----------------------+--> CANCELLED | COMPLETED

Every status write is conditional on the status that was observed, so a
concurrent change makes the write match nothing instead of clobbering it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.domain.enums import (
    DRIVER_SETTABLE_RIDE_STATUSES,
    BookingStatus,
    RideStatus,
)
from campuspool.domain.errors import (
    AlreadyOpen,
    Forbidden,
    HasConfirmedBookings,
    InvalidStateTransition,
    RideNotFound,
    ValidationFailed,
)
from campuspool.domain.ride_time import parse_ride_time
from campuspool.domain.transitions import assert_ride_transition, derive_ride_status
from campuspool.infrastructure.models import BookingModel, RideModel
from campuspool.infrastructure.repositories import (
    BookingRepository,
    DriverRepository,
    RideRepository,
)
from campuspool.services.announcements import Announcer
from campuspool.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerAudit:
    ride_id: int
    total_seats: int
    available_seats: int
    held_seats: int
    status: RideStatus
    expected_status: RideStatus

    @property
    def consistent(self) -> bool:
        return (
            self.available_seats + self.held_seats == self.total_seats
            and self.status == self.expected_status
        )


class RideLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.session = session
        self.rides = RideRepository(session)
        self.bookings = BookingRepository(session)
        self.drivers = DriverRepository(session)
        self.announcer = Announcer(session, dispatcher)

    # ── Commands ─────────────────────────────────────────────────────

    async def create(
        self,
        driver_id: int,
        *,
        pickup_location: str,
        drop_location: str,
        date: date,
        time: str,
        price_per_seat: float,
        total_seats: int,
    ) -> RideModel:
        """Publish a ride: pending, unconfirmed, every seat available."""
        pickup_location = (pickup_location or "").strip()
        drop_location = (drop_location or "").strip()
        if not pickup_location or not drop_location:
            raise ValidationFailed("Pickup and drop locations are required")
        if total_seats < 1:
            raise ValidationFailed("Total seats must be at least 1")
        if price_per_seat < 0:
            raise ValidationFailed("Price cannot be negative")
        parse_ride_time(time)
        if await self.drivers.get_by_id(driver_id) is None:
            raise Forbidden("Driver account not found")

        ride = await self.rides.create_ride(
            driver_id=driver_id,
            pickup_location=pickup_location,
            drop_location=drop_location,
            date=date,
            time=time.strip(),
            price_per_seat=price_per_seat,
            total_seats=total_seats,
        )
        await self.session.commit()
        logger.info("Ride %s created by driver %s (%d seats)", ride.id, driver_id, total_seats)
        return await self.rides.get_by_id(ride.id, refresh=True)

    async def confirm(self, ride_id: int, requester_id: int) -> RideModel:
        """Driver opens the ride for bookings."""
        ride = await self._owned(ride_id, requester_id, "confirm")
        self._check_confirmable(ride)

        if not await self.rides.confirm_if_pending(ride_id):
            # Lost a race with another status change: report what won.
            current = await self.rides.get_by_id(ride_id, refresh=True)
            if current is None:
                raise RideNotFound()
            self._check_confirmable(current)
            raise InvalidStateTransition(
                f"Cannot confirm ride in status {current.status.value}"
            )

        await self.session.commit()
        logger.info("Ride %s confirmed by driver %s", ride_id, requester_id)
        return await self.rides.get_by_id(ride_id, refresh=True)

    async def recompute_after_seat_change(self, ride_id: int) -> Optional[RideModel]:
        """
        Align ``status`` with ``available_seats``: open+0 -> full,
        full+>0 -> open.  Both writes are conditional and idempotent, and
        neither touches pending, cancelled or completed rides.
        """
        await self.rides.mark_full_if_exhausted(ride_id)
        await self.rides.reopen_if_seats_available(ride_id)
        return await self.rides.get_by_id(ride_id, refresh=True)

    async def update_status(
        self, ride_id: int, requester_id: int, status: RideStatus
    ) -> RideModel:
        """Driver cancels or completes their ride.  No seat effects."""
        status = RideStatus(status)
        if status not in DRIVER_SETTABLE_RIDE_STATUSES:
            raise ValidationFailed(
                f"Drivers may only set status to "
                f"{', '.join(sorted(s.value for s in DRIVER_SETTABLE_RIDE_STATUSES))}"
            )
        ride = await self._owned(ride_id, requester_id, "update")
        assert_ride_transition(ride.status, status)

        if not await self.rides.set_status_if(ride_id, ride.status, status):
            current = await self.rides.get_by_id(ride_id, refresh=True)
            if current is None:
                raise RideNotFound()
            raise InvalidStateTransition(
                f"Ride changed to {current.status.value} concurrently"
            )

        await self.session.commit()
        logger.info("Ride %s moved to %s by driver %s", ride_id, status.value, requester_id)
        return await self.rides.get_by_id(ride_id, refresh=True)

    async def delete(self, ride_id: int, requester_id: int) -> list[BookingModel]:
        """
        Remove a ride that has no confirmed bookings.

        The ride is closed first so no new reservation can land, then its
        pending bookings are cancelled in one statement (terminal bookings
        are left as they are).  Returns the bookings that were cancelled.
        """
        ride = await self._owned(ride_id, requester_id, "delete")
        await self._refuse_if_confirmed(ride_id)

        await self.rides.close_if_active(ride_id)
        cancelled_ids = await self.bookings.cancel_pending_for_ride(ride_id)

        # Confirmations that committed before the cascade are visible now;
        # later ones match nothing because their booking is cancelled.
        try:
            await self._refuse_if_confirmed(ride_id)
        except HasConfirmedBookings:
            await self.session.rollback()
            raise

        await self.rides.delete(ride_id)
        await self.session.commit()
        logger.info(
            "Ride %s deleted by driver %s; %d pending booking(s) cancelled",
            ride_id, requester_id, len(cancelled_ids),
        )

        cancelled = [
            await self.bookings.get_by_id(booking_id, refresh=True)
            for booking_id in cancelled_ids
        ]
        for booking in cancelled:
            await self.announcer.ride_removed(ride, booking)
        return cancelled

    # ── Queries ──────────────────────────────────────────────────────

    async def get(self, ride_id: int) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise RideNotFound()
        return ride

    async def list_open(
        self,
        *,
        on_date: Optional[date] = None,
        pickup_location: Optional[str] = None,
        drop_location: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[RideModel], int]:
        return await self.rides.list_open(
            on_date=on_date,
            pickup_location=pickup_location,
            drop_location=drop_location,
            offset=offset,
            limit=limit,
        )

    async def list_for_driver(
        self, driver_id: int, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[RideModel], int]:
        return await self.rides.list_for_driver(driver_id, offset=offset, limit=limit)

    async def ledger_audit(self, ride_id: int) -> LedgerAudit:
        """Check ``available + held == total`` and the derived status."""
        ride = await self.get(ride_id)
        held = await self.bookings.held_seats(ride_id)
        return LedgerAudit(
            ride_id=ride.id,
            total_seats=ride.total_seats,
            available_seats=ride.available_seats,
            held_seats=held,
            status=ride.status,
            expected_status=derive_ride_status(
                ride.status, ride.available_seats, ride.confirmed
            ),
        )

    # ── Internals ────────────────────────────────────────────────────

    async def _owned(self, ride_id: int, requester_id: int, action: str) -> RideModel:
        ride = await self.get(ride_id)
        if ride.driver_id != requester_id:
            raise Forbidden(f"Not authorized to {action} this ride")
        return ride

    @staticmethod
    def _check_confirmable(ride: RideModel) -> None:
        if ride.status in (RideStatus.OPEN, RideStatus.FULL):
            raise AlreadyOpen()
        assert_ride_transition(ride.status, RideStatus.OPEN)

    async def _refuse_if_confirmed(self, ride_id: int) -> None:
        confirmed = await self.bookings.count_for_ride(ride_id, [BookingStatus.CONFIRMED])
        if confirmed:
            raise HasConfirmedBookings(confirmed)
