"""
Seat Ledger
===========

All-or-nothing mutations of ``rides.available_seats``.

Why conditional updates
-----------------------
A read-check-write sequence lets two requests both read
``available_seats = 1`` and both book.  ``reserve`` instead issues one
UPDATE whose WHERE clause carries the whole precondition (ride exists, open,
confirmed, enough seats).  The store serialises writers on the row, so among
concurrent callers exactly the prefix that fits succeeds and the rest match
zero rows.

A zero-row result cannot tell "closed" from "not enough seats"; callers
re-read the ride to classify the failure (see ``BookingLifecycle``).

The ledger never reads or writes bookings.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.domain.errors import ValidationFailed
from campuspool.infrastructure.models import RideModel
from campuspool.infrastructure.repositories import RideRepository

logger = logging.getLogger(__name__)


class SeatLedger:
    def __init__(self, session: AsyncSession):
        self.rides = RideRepository(session)

    async def reserve(self, ride_id: int, seats: int) -> Optional[RideModel]:
        """Decrement atomically; return the post-update ride or ``None``."""
        _check_seats(seats)
        if not await self.rides.decrement_seats_if_open(ride_id, seats):
            logger.debug("Reserve of %d seat(s) on ride %s matched no row", seats, ride_id)
            return None
        return await self.rides.get_by_id(ride_id, refresh=True)

    async def release(self, ride_id: Optional[int], seats: int) -> Optional[RideModel]:
        """
        Return seats to the ride, clamped to ``total_seats``.

        A ``full`` ride reopens in the same statement.  Releasing against a
        ride that no longer exists is a no-op.
        """
        _check_seats(seats)
        if ride_id is None or not await self.rides.increment_seats_clamped(
            ride_id, seats
        ):
            logger.info("Release of %d seat(s): ride %s no longer exists", seats, ride_id)
            return None
        return await self.rides.get_by_id(ride_id, refresh=True)


def _check_seats(seats: int) -> None:
    if not isinstance(seats, int) or isinstance(seats, bool) or seats < 1:
        raise ValidationFailed("Must book at least 1 seat")
