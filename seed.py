"""
Seed script -- populates the database with sample data for local development.

Run after migrations:
    python seed.py

Creates:
  - 4 sample drivers
  - 6 sample students
  - 6 sample rides (pending, open, full, completed)
  - bookings on the open and full rides, each ride's ``available_seats``
    equal to ``total_seats`` minus the seats its pending and confirmed
    bookings hold
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import func, select

from campuspool.domain.enums import BookingStatus, RideStatus
from campuspool.domain.ride_time import combine_ride_datetime
from campuspool.infrastructure.database import async_session_factory, engine
from campuspool.infrastructure.models import (
    BookingModel,
    DriverModel,
    RideModel,
    StudentModel,
)


DRIVERS = [
    {"name": "Ramesh Yadav", "phone": "+91 98200 11111", "vehicle_model": "Maruti Ertiga", "vehicle_number": "MH 01 AB 1234"},
    {"name": "Suresh Pillai", "phone": "+91 98200 22222", "vehicle_model": "Toyota Innova", "vehicle_number": "MH 02 CD 5678"},
    {"name": "Farhan Shaikh", "phone": "+91 98200 33333", "vehicle_model": "Hyundai Aura", "vehicle_number": "MH 03 EF 9012"},
    {"name": "Gurpreet Kaur", "phone": "+91 98200 44444", "vehicle_model": "Mahindra XUV500", "vehicle_number": "MH 04 GH 3456"},
]

STUDENTS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com", "phone": "+91 90000 00001", "registration_number": "21BCE1001"},
    {"name": "Priya Patel", "email": "priya@example.com", "phone": "+91 90000 00002", "registration_number": "21BCE1002"},
    {"name": "Rohan Mehta", "email": "rohan@example.com", "phone": "+91 90000 00003", "registration_number": "21BME1003"},
    {"name": "Sneha Gupta", "email": "sneha@example.com", "phone": "+91 90000 00004", "registration_number": "22BIT1004"},
    {"name": "Ananya Reddy", "email": "ananya@example.com", "phone": "+91 90000 00005", "registration_number": "22BEC1005"},
    {"name": "Diya Iyer", "email": "diya@example.com", "phone": "+91 90000 00006", "registration_number": "23BCE1006"},
]

# (driver index, pickup, drop, days from today, time, price, total seats, status)
RIDES = [
    (0, "Main Gate", "Railway Station", 1, "08:30 AM", 60.0, 4, RideStatus.OPEN),
    (1, "Hostel Block A", "Airport", 2, "05:15 PM", 250.0, 6, RideStatus.OPEN),
    (2, "Library", "City Mall", 1, "06:00 PM", 40.0, 2, RideStatus.FULL),
    (3, "Main Gate", "Bus Terminal", 3, "07:45 AM", 35.0, 4, RideStatus.PENDING),
    (0, "Sports Complex", "Railway Station", -2, "09:00 AM", 60.0, 3, RideStatus.COMPLETED),
    (1, "Hostel Block C", "Airport", 4, "11:30 PM", 240.0, 5, RideStatus.OPEN),
]

# (ride index, student index, seats, status)
BOOKINGS = [
    (0, 0, 1, BookingStatus.CONFIRMED),
    (0, 1, 2, BookingStatus.PENDING),
    (1, 2, 1, BookingStatus.PENDING),
    (1, 3, 1, BookingStatus.CANCELLED),
    (2, 4, 1, BookingStatus.CONFIRMED),
    (2, 5, 1, BookingStatus.CONFIRMED),
    (4, 0, 2, BookingStatus.COMPLETED),
    (5, 1, 1, BookingStatus.REJECTED),
]

_HOLDS_SEATS = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        existing = (await session.execute(select(func.count(DriverModel.id)))).scalar()
        if existing > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Drivers ───────────────────────────────────────────────────
        drivers = [DriverModel(verified=True, **d) for d in DRIVERS]
        session.add_all(drivers)
        await session.flush()
        print(f"  Created {len(drivers)} drivers")

        # ── Students ──────────────────────────────────────────────────
        students = [StudentModel(**s) for s in STUDENTS]
        session.add_all(students)
        await session.flush()
        print(f"  Created {len(students)} students")

        # ── Rides ─────────────────────────────────────────────────────
        held = {i: 0 for i in range(len(RIDES))}
        for ride_idx, _, seats, status in BOOKINGS:
            if status in _HOLDS_SEATS:
                held[ride_idx] += seats

        today = date.today()
        rides = []
        for i, (drv, pickup, drop, days, time, price, total, status) in enumerate(RIDES):
            ride_date = today + timedelta(days=days)
            ride = RideModel(
                driver_id=drivers[drv].id,
                pickup_location=pickup,
                drop_location=drop,
                date=ride_date,
                time=time,
                departs_at=combine_ride_datetime(ride_date, time),
                price_per_seat=price,
                total_seats=total,
                available_seats=total - held[i],
                status=status,
                confirmed=status != RideStatus.PENDING,
            )
            rides.append(ride)
        session.add_all(rides)
        await session.flush()
        print(f"  Created {len(rides)} rides")

        # ── Bookings ──────────────────────────────────────────────────
        bookings = []
        for ride_idx, student_idx, seats, status in BOOKINGS:
            ride = rides[ride_idx]
            bookings.append(
                BookingModel(
                    ride_id=ride.id,
                    student_id=students[student_idx].id,
                    driver_id=ride.driver_id,
                    seats_booked=seats,
                    pickup_location=ride.pickup_location,
                    drop_location=ride.drop_location,
                    ride_datetime=combine_ride_datetime(ride.date, ride.time),
                    booking_status=status,
                )
            )
        session.add_all(bookings)
        await session.flush()
        print(f"  Created {len(bookings)} bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
