"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work).  Writes to the
hot rows (``rides.available_seats``, ``rides.status``,
``bookings.booking_status``) are exposed **only** as conditional UPDATEs:
the precondition sits in the WHERE clause, the store evaluates it at write
time, and the caller learns from the row count whether it won.  There is no
unconditional setter for seat counts or statuses.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from sqlalchemy import case, delete, func, literal, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, DriverModel, RideModel, StudentModel
from campuspool.domain.ride_time import combine_ride_datetime
from campuspool.domain.enums import (
    SEAT_HOLDING_STATUSES,
    BookingStatus,
    PaymentStatus,
    RideStatus,
)

_RIDE_STATUS_TYPE = RideModel.__table__.c.status.type


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self,
        *,
        driver_id: int,
        pickup_location: str,
        drop_location: str,
        date: date,
        time: str,
        price_per_seat: float,
        total_seats: int,
    ) -> RideModel:
        ride = RideModel(
            driver_id=driver_id,
            pickup_location=pickup_location,
            drop_location=drop_location,
            date=date,
            time=time,
            departs_at=combine_ride_datetime(date, time),
            price_per_seat=price_per_seat,
            total_seats=total_seats,
            available_seats=total_seats,
            status=RideStatus.PENDING,
            confirmed=False,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(
        self, ride_id: int, *, refresh: bool = False
    ) -> Optional[RideModel]:
        """Load a ride; ``refresh`` bypasses the identity map's stale copy."""
        return await self.session.get(RideModel, ride_id, populate_existing=refresh)

    # ── Conditional seat-ledger primitives ───────────────────────────

    async def decrement_seats_if_open(self, ride_id: int, seats: int) -> bool:
        """``available_seats -= seats`` iff open, confirmed and enough seats."""
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.OPEN,
                RideModel.confirmed.is_(True),
                RideModel.available_seats >= seats,
            )
            .values(available_seats=RideModel.available_seats - seats)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_seats_clamped(self, ride_id: int, seats: int) -> bool:
        """
        ``available_seats += seats`` capped at ``total_seats``.

        In the same statement a ``full`` ride flips back to ``open``; SET
        expressions see the pre-update row, so the flip keys off the prior
        status.  Cancelled/completed rides keep their status.
        """
        incremented = RideModel.available_seats + seats
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id)
            .values(
                available_seats=case(
                    (incremented > RideModel.total_seats, RideModel.total_seats),
                    else_=incremented,
                ),
                status=case(
                    (
                        RideModel.status == RideStatus.FULL,
                        literal(RideStatus.OPEN, _RIDE_STATUS_TYPE),
                    ),
                    else_=RideModel.status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ── Conditional status primitives ────────────────────────────────

    async def mark_full_if_exhausted(self, ride_id: int) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.OPEN,
                RideModel.available_seats == 0,
            )
            .values(status=RideStatus.FULL)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def reopen_if_seats_available(self, ride_id: int) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status == RideStatus.FULL,
                RideModel.available_seats > 0,
            )
            .values(status=RideStatus.OPEN)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def confirm_if_pending(self, ride_id: int) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == RideStatus.PENDING)
            .values(confirmed=True, status=RideStatus.OPEN)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_status_if(
        self, ride_id: int, expected: RideStatus, target: RideStatus
    ) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id, RideModel.status == expected)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def close_if_active(self, ride_id: int) -> bool:
        """
        Move a pending, open or full ride to ``cancelled``.

        Holds the ride row until commit; reservations queued behind it then
        see a non-open ride and match nothing.
        """
        result = await self.session.execute(
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status.in_(
                    [RideStatus.PENDING, RideStatus.OPEN, RideStatus.FULL]
                ),
            )
            .values(status=RideStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete(self, ride_id: int) -> None:
        await self.session.execute(delete(RideModel).where(RideModel.id == ride_id))

    # ── Queries ──────────────────────────────────────────────────────

    async def list_open(
        self,
        *,
        on_date: Optional[date] = None,
        pickup_location: Optional[str] = None,
        drop_location: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[RideModel], int]:
        """Bookable rides: open, confirmed and with at least one seat left."""
        conditions = [
            RideModel.status == RideStatus.OPEN,
            RideModel.confirmed.is_(True),
            RideModel.available_seats > 0,
        ]
        if on_date is not None:
            conditions.append(RideModel.date == on_date)
        if pickup_location:
            conditions.append(RideModel.pickup_location.ilike(f"%{pickup_location}%"))
        if drop_location:
            conditions.append(RideModel.drop_location.ilike(f"%{drop_location}%"))

        result = await self.session.execute(
            select(RideModel)
            .where(*conditions)
            .order_by(RideModel.date, RideModel.departs_at, RideModel.id)
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.execute(
            select(func.count()).select_from(RideModel).where(*conditions)
        )
        return list(result.scalars().all()), total.scalar() or 0

    async def list_for_driver(
        self, driver_id: int, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[RideModel], int]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.driver_id == driver_id)
            .order_by(RideModel.created_at.desc(), RideModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.execute(
            select(func.count())
            .select_from(RideModel)
            .where(RideModel.driver_id == driver_id)
        )
        return list(result.scalars().all()), total.scalar() or 0


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_booking(
        self,
        *,
        ride_id: int,
        student_id: int,
        driver_id: int,
        seats_booked: int,
        pickup_location: str,
        drop_location: str,
        ride_datetime,
    ) -> BookingModel:
        booking = BookingModel(
            ride_id=ride_id,
            student_id=student_id,
            driver_id=driver_id,
            seats_booked=seats_booked,
            pickup_location=pickup_location,
            drop_location=drop_location,
            ride_datetime=ride_datetime,
            booking_status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(
        self, booking_id: int, *, refresh: bool = False
    ) -> Optional[BookingModel]:
        return await self.session.get(
            BookingModel, booking_id, populate_existing=refresh
        )

    async def transition_if(
        self, booking_id: int, expected: BookingStatus, target: BookingStatus
    ) -> bool:
        """Optimistic status change: only commits if still in *expected*."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.booking_status == expected,
            )
            .values(booking_status=target)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def cancel_pending_for_ride(self, ride_id: int) -> list[int]:
        """Cancel every still-pending booking of a ride in one statement."""
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.booking_status == BookingStatus.PENDING,
            )
            .values(booking_status=BookingStatus.CANCELLED)
            .returning(BookingModel.id)
            .execution_options(synchronize_session=False)
        )
        return sorted(result.scalars().all())

    async def count_for_ride(
        self, ride_id: int, statuses: Sequence[BookingStatus]
    ) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(
                BookingModel.ride_id == ride_id,
                BookingModel.booking_status.in_(list(statuses)),
            )
        )
        return result.scalar() or 0

    async def held_seats(self, ride_id: int) -> int:
        """Seats currently charged against the ride by active bookings."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(BookingModel.seats_booked), 0)).where(
                BookingModel.ride_id == ride_id,
                BookingModel.booking_status.in_(list(SEAT_HOLDING_STATUSES)),
            )
        )
        return int(result.scalar() or 0)

    async def list_for_student(
        self, student_id: int, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[BookingModel], int]:
        return await self._page(BookingModel.student_id == student_id, offset, limit)

    async def list_for_driver(
        self, driver_id: int, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[BookingModel], int]:
        return await self._page(BookingModel.driver_id == driver_id, offset, limit)

    async def _page(self, condition, offset: int, limit: int):
        result = await self.session.execute(
            select(BookingModel)
            .where(condition)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.execute(
            select(func.count()).select_from(BookingModel).where(condition)
        )
        return list(result.scalars().all()), total.scalar() or 0


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(
        self, driver_id: int, *, refresh: bool = False
    ) -> Optional[DriverModel]:
        return await self.session.get(
            DriverModel, driver_id, populate_existing=refresh
        )

    async def set_notification_token(self, driver_id: int, token: str) -> bool:
        result = await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id)
            .values(notification_token=token)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_verified_if(
        self, driver_id: int, expected: bool, target: bool
    ) -> bool:
        result = await self.session.execute(
            update(DriverModel)
            .where(DriverModel.id == driver_id, DriverModel.verified.is_(expected))
            .values(verified=target)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_drivers(
        self,
        *,
        verified: Optional[bool] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[DriverModel], int]:
        """Newest drivers first; ``search`` matches name, phone or plate."""
        conditions = []
        if verified is not None:
            conditions.append(DriverModel.verified.is_(verified))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    DriverModel.name.ilike(pattern),
                    DriverModel.phone.ilike(pattern),
                    DriverModel.vehicle_number.ilike(pattern),
                )
            )

        result = await self.session.execute(
            select(DriverModel)
            .where(*conditions)
            .order_by(DriverModel.created_at.desc(), DriverModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.execute(
            select(func.count()).select_from(DriverModel).where(*conditions)
        )
        return list(result.scalars().all()), total.scalar() or 0


class StudentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, student_id: int) -> Optional[StudentModel]:
        return await self.session.get(StudentModel, student_id)

    async def set_notification_token(self, student_id: int, token: str) -> bool:
        result = await self.session.execute(
            update(StudentModel)
            .where(StudentModel.id == student_id)
            .values(notification_token=token)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
