"""
Shared test fixtures.

Uses a file-backed SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  A file rather than ``:memory:`` gives every
session its own connection, which the concurrency tests rely on: SQLite
then serialises the conditional UPDATEs the way PostgreSQL row locks do.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from campuspool.domain.enums import RideStatus
from campuspool.domain.errors import InvalidRideTime
from campuspool.domain.ride_time import combine_ride_datetime
from campuspool.infrastructure.database import Base
from campuspool.infrastructure.models import DriverModel, RideModel, StudentModel


class RecordingDispatcher:
    """Stands in for ``NotificationDispatcher``; keeps every notify call."""

    def __init__(self):
        self.sent: list[dict] = []

    def notify(self, recipient_token, title, body, metadata=None):
        if not recipient_token:
            return
        self.sent.append(
            {"to": recipient_token, "title": title, "body": body, "data": metadata or {}}
        )

    def titles(self) -> list[str]:
        return [m["title"] for m in self.sent]


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'campuspool.db'}",
        echo=False,
        connect_args={"timeout": 15},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


# ── Factories ─────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def driver(session_factory) -> DriverModel:
    async with session_factory() as session:
        d = DriverModel(
            name="Ramesh Yadav",
            phone="+91 98200 11111",
            vehicle_model="Maruti Ertiga",
            verified=True,
            notification_token="ExponentPushToken[driver]",
        )
        session.add(d)
        await session.commit()
        return d


@pytest_asyncio.fixture
async def other_driver(session_factory) -> DriverModel:
    async with session_factory() as session:
        d = DriverModel(name="Suresh Pillai", phone="+91 98200 22222")
        session.add(d)
        await session.commit()
        return d


async def _make_students(session_factory, count: int) -> list[StudentModel]:
    async with session_factory() as session:
        students = [
            StudentModel(
                name=f"Student {i}",
                email=f"student{i}@example.com",
                phone=f"+91 90000 0000{i}",
                notification_token=f"ExponentPushToken[student-{i}]",
            )
            for i in range(count)
        ]
        session.add_all(students)
        await session.commit()
        return students


@pytest_asyncio.fixture
async def students(session_factory) -> list[StudentModel]:
    return await _make_students(session_factory, 5)


@pytest_asyncio.fixture
async def student(students) -> StudentModel:
    return students[0]


@pytest.fixture
def make_ride(session_factory, driver):
    """Insert a ride directly, bypassing the lifecycle."""

    async def _make(
        total_seats: int = 4,
        available_seats: int | None = None,
        status: RideStatus = RideStatus.OPEN,
        confirmed: bool | None = None,
        time: str = "10:00 AM",
        ride_date: date | None = None,
        pickup_location: str = "Main Gate",
        drop_location: str = "Railway Station",
        driver_id: int | None = None,
    ) -> RideModel:
        ride_date = ride_date or date.today() + timedelta(days=1)
        try:
            departs_at = combine_ride_datetime(ride_date, time)
        except InvalidRideTime:
            departs_at = None

        async with session_factory() as session:
            ride = RideModel(
                driver_id=driver_id or driver.id,
                pickup_location=pickup_location,
                drop_location=drop_location,
                date=ride_date,
                time=time,
                departs_at=departs_at,
                price_per_seat=50.0,
                total_seats=total_seats,
                available_seats=total_seats if available_seats is None else available_seats,
                status=status,
                confirmed=status != RideStatus.PENDING if confirmed is None else confirmed,
            )
            session.add(ride)
            await session.commit()
            return ride

    return _make


@pytest_asyncio.fixture
async def open_ride(make_ride) -> RideModel:
    return await make_ride(total_seats=4)
