"""
Booking lifecycle against a real (SQLite) store.

Each operation runs in its own session, as separate API requests would.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from campuspool.domain.enums import BookingStatus, RideStatus
from campuspool.domain.errors import (
    AlreadyTerminal,
    BookingNotFound,
    Forbidden,
    InsufficientSeats,
    InvalidRideTime,
    InvalidStateTransition,
    RideNotConfirmed,
    RideNotFound,
    RideNotOpen,
    ValidationFailed,
)
from campuspool.services.booking_lifecycle import BookingLifecycle
from campuspool.services.ride_lifecycle import RideLifecycle


# ── Helpers ───────────────────────────────────────────────────────────


async def book(session_factory, ride_id, student_id, seats, dispatcher=None):
    async with session_factory() as session:
        return await BookingLifecycle(session, dispatcher).create_booking(
            ride_id, student_id, seats
        )


async def act(session_factory, action, booking_id, requester_id, dispatcher=None):
    async with session_factory() as session:
        lifecycle = BookingLifecycle(session, dispatcher)
        return await getattr(lifecycle, action)(booking_id, requester_id)


async def audit(session_factory, ride_id):
    async with session_factory() as session:
        return await RideLifecycle(session).ledger_audit(ride_id)


class ExplodingDispatcher:
    def notify(self, *args, **kwargs):
        raise RuntimeError("push backend down")


# ── Creation ──────────────────────────────────────────────────────────


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_snapshots_ride_and_holds_seats(self, session_factory, open_ride, student, driver):
        booking = await book(session_factory, open_ride.id, student.id, 2)

        assert booking.booking_status == BookingStatus.PENDING
        assert booking.ride_id == open_ride.id
        assert booking.driver_id == driver.id
        assert booking.pickup_location == "Main Gate"
        assert booking.drop_location == "Railway Station"
        assert booking.ride_datetime == datetime(
            open_ride.date.year, open_ride.date.month, open_ride.date.day, 10, 0
        )
        assert booking.created_at is not None

        result = await audit(session_factory, open_ride.id)
        assert result.available_seats == 2
        assert result.held_seats == 2
        assert result.consistent

    @pytest.mark.asyncio
    async def test_last_seats_mark_ride_full(self, session_factory, make_ride, student):
        ride = await make_ride(total_seats=2)
        await book(session_factory, ride.id, student.id, 2)

        result = await audit(session_factory, ride.id)
        assert result.available_seats == 0
        assert result.status == RideStatus.FULL
        assert result.consistent

    @pytest.mark.asyncio
    async def test_scenario_insufficient_then_cancel(self, session_factory, open_ride, students):
        a = await book(session_factory, open_ride.id, students[0].id, 3)
        after_a = await audit(session_factory, open_ride.id)
        assert (after_a.available_seats, after_a.status) == (1, RideStatus.OPEN)

        with pytest.raises(InsufficientSeats) as exc_info:
            await book(session_factory, open_ride.id, students[1].id, 2)
        assert exc_info.value.available == 1
        assert exc_info.value.message == "Only 1 seat(s) available"
        assert (await audit(session_factory, open_ride.id)).available_seats == 1

        await act(session_factory, "cancel_booking", a.id, students[0].id)
        final = await audit(session_factory, open_ride.id)
        assert (final.available_seats, final.status) == (4, RideStatus.OPEN)
        assert final.consistent

    @pytest.mark.asyncio
    async def test_missing_ride(self, session_factory, student):
        with pytest.raises(RideNotFound):
            await book(session_factory, 9999, student.id, 1)

    @pytest.mark.asyncio
    async def test_unknown_student_holds_no_seats(self, session_factory, open_ride, students):
        with pytest.raises(Forbidden):
            await book(session_factory, open_ride.id, students[-1].id + 100, 1)
        state = await audit(session_factory, open_ride.id)
        assert (state.available_seats, state.held_seats) == (4, 0)

    @pytest.mark.asyncio
    async def test_unconfirmed_ride(self, session_factory, make_ride, student):
        ride = await make_ride(status=RideStatus.PENDING)
        with pytest.raises(RideNotConfirmed):
            await book(session_factory, ride.id, student.id, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [RideStatus.CANCELLED, RideStatus.COMPLETED])
    async def test_closed_ride(self, session_factory, make_ride, student, status):
        ride = await make_ride(status=status)
        with pytest.raises(RideNotOpen):
            await book(session_factory, ride.id, student.id, 1)

    @pytest.mark.asyncio
    async def test_full_ride_reports_insufficient_seats(self, session_factory, make_ride, student):
        ride = await make_ride(total_seats=2, available_seats=0, status=RideStatus.FULL)
        with pytest.raises(InsufficientSeats):
            await book(session_factory, ride.id, student.id, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("seats", [0, -2])
    async def test_seat_count_validation(self, session_factory, open_ride, student, seats):
        with pytest.raises(ValidationFailed):
            await book(session_factory, open_ride.id, student.id, seats)

    @pytest.mark.asyncio
    async def test_malformed_ride_time_leaves_seats_alone(self, session_factory, make_ride, student):
        ride = await make_ride(total_seats=3, time="noon")
        with pytest.raises(InvalidRideTime):
            await book(session_factory, ride.id, student.id, 1)
        assert (await audit(session_factory, ride.id)).available_seats == 3


# ── Transitions ───────────────────────────────────────────────────────


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_cancel_twice_is_already_terminal(self, session_factory, open_ride, student):
        booking = await book(session_factory, open_ride.id, student.id, 2)
        cancelled = await act(session_factory, "cancel_booking", booking.id, student.id)
        assert cancelled.booking_status == BookingStatus.CANCELLED

        with pytest.raises(AlreadyTerminal) as exc_info:
            await act(session_factory, "cancel_booking", booking.id, student.id)
        assert exc_info.value.code == "already-terminal"
        assert (await audit(session_factory, open_ride.id)).available_seats == 4

    @pytest.mark.asyncio
    async def test_cancel_confirmed_releases_seats(self, session_factory, make_ride, student, driver):
        ride = await make_ride(total_seats=2)
        booking = await book(session_factory, ride.id, student.id, 2)
        await act(session_factory, "confirm_booking", booking.id, driver.id)
        await act(session_factory, "cancel_booking", booking.id, student.id)

        result = await audit(session_factory, ride.id)
        assert (result.available_seats, result.status) == (2, RideStatus.OPEN)

    @pytest.mark.asyncio
    async def test_only_owner_may_cancel(self, session_factory, open_ride, students):
        booking = await book(session_factory, open_ride.id, students[0].id, 1)
        with pytest.raises(Forbidden):
            await act(session_factory, "cancel_booking", booking.id, students[1].id)

    @pytest.mark.asyncio
    async def test_missing_booking(self, session_factory, student):
        with pytest.raises(BookingNotFound):
            await act(session_factory, "cancel_booking", 9999, student.id)


class TestDriverDecisions:
    @pytest.mark.asyncio
    async def test_confirm_keeps_seats_held(self, session_factory, open_ride, student, driver):
        booking = await book(session_factory, open_ride.id, student.id, 2)
        confirmed = await act(session_factory, "confirm_booking", booking.id, driver.id)

        assert confirmed.booking_status == BookingStatus.CONFIRMED
        result = await audit(session_factory, open_ride.id)
        assert result.available_seats == 2
        assert result.consistent

    @pytest.mark.asyncio
    async def test_confirm_twice_is_invalid(self, session_factory, open_ride, student, driver):
        booking = await book(session_factory, open_ride.id, student.id, 1)
        await act(session_factory, "confirm_booking", booking.id, driver.id)
        with pytest.raises(InvalidStateTransition) as exc_info:
            await act(session_factory, "confirm_booking", booking.id, driver.id)
        assert exc_info.value.code == "invalid-transition"

    @pytest.mark.asyncio
    async def test_reject_reopens_full_ride(self, session_factory, make_ride, student, driver):
        ride = await make_ride(total_seats=1)
        booking = await book(session_factory, ride.id, student.id, 1)
        assert (await audit(session_factory, ride.id)).status == RideStatus.FULL

        rejected = await act(session_factory, "reject_booking", booking.id, driver.id)
        assert rejected.booking_status == BookingStatus.REJECTED
        result = await audit(session_factory, ride.id)
        assert (result.available_seats, result.status) == (1, RideStatus.OPEN)

    @pytest.mark.asyncio
    async def test_reject_terminal_booking_is_invalid(self, session_factory, open_ride, student, driver):
        booking = await book(session_factory, open_ride.id, student.id, 1)
        await act(session_factory, "cancel_booking", booking.id, student.id)
        with pytest.raises(InvalidStateTransition):
            await act(session_factory, "reject_booking", booking.id, driver.id)
        assert (await audit(session_factory, open_ride.id)).available_seats == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["confirm_booking", "reject_booking"])
    async def test_only_ride_driver_decides(self, session_factory, open_ride, student, other_driver, action):
        booking = await book(session_factory, open_ride.id, student.id, 1)
        with pytest.raises(Forbidden):
            await act(session_factory, action, booking.id, other_driver.id)


# ── Invariant ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ledger_holds_after_mixed_sequence(session_factory, make_ride, students, driver):
    ride = await make_ride(total_seats=6)
    b0 = await book(session_factory, ride.id, students[0].id, 2)
    b1 = await book(session_factory, ride.id, students[1].id, 1)
    b2 = await book(session_factory, ride.id, students[2].id, 3)
    assert (await audit(session_factory, ride.id)).status == RideStatus.FULL

    await act(session_factory, "confirm_booking", b0.id, driver.id)
    await act(session_factory, "reject_booking", b1.id, driver.id)
    await act(session_factory, "cancel_booking", b2.id, students[2].id)
    b3 = await book(session_factory, ride.id, students[3].id, 2)
    await act(session_factory, "confirm_booking", b3.id, driver.id)

    result = await audit(session_factory, ride.id)
    assert result.held_seats == 4
    assert result.available_seats == 2
    assert result.status == RideStatus.OPEN
    assert result.consistent


# ── Notifications ─────────────────────────────────────────────────────


class TestAnnouncements:
    @pytest.mark.asyncio
    async def test_new_booking_goes_to_driver(self, session_factory, open_ride, student, dispatcher):
        booking = await book(session_factory, open_ride.id, student.id, 2, dispatcher)

        assert dispatcher.titles() == ["New Booking Request"]
        message = dispatcher.sent[0]
        assert message["to"] == "ExponentPushToken[driver]"
        assert message["body"] == (
            "Student 0 booked 2 seat(s) for your ride from Main Gate to Railway Station"
        )
        assert message["data"] == {
            "type": "new_booking",
            "bookingId": str(booking.id),
            "rideId": str(open_ride.id),
        }

    @pytest.mark.asyncio
    async def test_decisions_go_to_student(self, session_factory, open_ride, students, driver, dispatcher):
        first = await book(session_factory, open_ride.id, students[0].id, 1)
        second = await book(session_factory, open_ride.id, students[1].id, 1)

        await act(session_factory, "confirm_booking", first.id, driver.id, dispatcher)
        await act(session_factory, "reject_booking", second.id, driver.id, dispatcher)

        assert dispatcher.titles() == ["Booking Confirmed!", "Booking Rejected"]
        assert dispatcher.sent[0]["to"] == "ExponentPushToken[student-0]"
        assert dispatcher.sent[1]["to"] == "ExponentPushToken[student-1]"
        assert "confirmed by Ramesh Yadav" in dispatcher.sent[0]["body"]

    @pytest.mark.asyncio
    async def test_cancellation_goes_to_driver(self, session_factory, open_ride, student, dispatcher):
        booking = await book(session_factory, open_ride.id, student.id, 1)
        await act(session_factory, "cancel_booking", booking.id, student.id, dispatcher)

        assert dispatcher.titles() == ["Booking Cancelled"]
        assert dispatcher.sent[0]["data"]["type"] == "booking_cancelled"

    @pytest.mark.asyncio
    async def test_refused_booking_sends_nothing(self, session_factory, make_ride, student, dispatcher):
        ride = await make_ride(status=RideStatus.PENDING)
        with pytest.raises(RideNotConfirmed):
            await book(session_factory, ride.id, student.id, 1, dispatcher)
        assert dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_dispatch_failure_does_not_undo_booking(self, session_factory, open_ride, student):
        booking = await book(session_factory, open_ride.id, student.id, 1, ExplodingDispatcher())

        assert booking.booking_status == BookingStatus.PENDING
        assert (await audit(session_factory, open_ride.id)).available_seats == 3


# ── Queries ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_listings_are_scoped_to_requester(session_factory, make_ride, students, driver, other_driver):
    mine = await make_ride(total_seats=4)
    theirs = await make_ride(total_seats=4, driver_id=other_driver.id)
    await book(session_factory, mine.id, students[0].id, 1)
    await book(session_factory, mine.id, students[1].id, 1)
    await book(session_factory, theirs.id, students[0].id, 1)

    async with session_factory() as session:
        lifecycle = BookingLifecycle(session)
        student_items, student_total = await lifecycle.list_for_student(students[0].id)
        driver_items, driver_total = await lifecycle.list_for_driver(driver.id, limit=1)

    assert student_total == 2
    assert {b.student_id for b in student_items} == {students[0].id}
    assert driver_total == 2
    assert len(driver_items) == 1
    assert driver_items[0].driver_id == driver.id


@pytest.mark.asyncio
async def test_single_booking_visible_to_its_parties_only(session_factory, open_ride, students, driver, other_driver):
    booking = await book(session_factory, open_ride.id, students[0].id, 2)

    async with session_factory() as session:
        lifecycle = BookingLifecycle(session)
        as_student = await lifecycle.get(booking.id, student_id=students[0].id)
        as_driver = await lifecycle.get(booking.id, driver_id=driver.id)
        with pytest.raises(Forbidden):
            await lifecycle.get(booking.id, student_id=students[1].id)
        with pytest.raises(Forbidden):
            await lifecycle.get(booking.id, driver_id=other_driver.id)
        with pytest.raises(BookingNotFound):
            await lifecycle.get(booking.id + 100, student_id=students[0].id)

    assert as_student.id == as_driver.id == booking.id
    assert as_student.seats_booked == 2
