"""
SQLAlchemy ORM models.

Tables
------
* ``drivers``   -- ride publishers (profile, verification flag, push token)
* ``students``  -- seat requesters (profile, push token)
* ``rides``     -- fixed-capacity rides; ``available_seats`` is the seat ledger
* ``bookings``  -- seat reservations with snapshot fields

Indexes
-------
* **B-Tree** on ``(status, date)`` and ``(confirmed, status, available_seats)``
  for the open-rides listing.
* **B-Tree** on ``(ride_id, booking_status)`` for the deletion guard and the
  ledger audit; ``student_id`` / ``driver_id`` for per-user listings.

Check constraints mirror the ledger bounds so a bug above the repository
layer cannot persist a negative or overfull count.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from campuspool.domain.enums import BookingStatus, PaymentStatus, RideStatus


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _status_type(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=20,
        values_callable=_enum_values,
    )


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(32), nullable=False)
    vehicle_model = Column(String(120), nullable=True)
    vehicle_number = Column(String(32), nullable=True)
    verified = Column(Boolean, default=False, nullable=False)
    notification_token = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class StudentModel(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=False)
    registration_number = Column(String(64), nullable=True)
    notification_token = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)

    pickup_location = Column(String(255), nullable=False)
    drop_location = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(20), nullable=False)  # e.g. "10:00 AM"
    departs_at = Column(DateTime, nullable=True)  # date + time, for ordering
    price_per_seat = Column(Float, nullable=False)

    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    status = Column(
        _status_type(RideStatus, "ride_status"),
        default=RideStatus.PENDING,
        nullable=False,
    )
    confirmed = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Joined so every ride load carries the publisher summary.
    driver = relationship("DriverModel", lazy="joined")

    __table_args__ = (
        CheckConstraint("total_seats >= 1", name="ck_rides_total_seats_positive"),
        CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_rides_available_seats_bounds",
        ),
        CheckConstraint("price_per_seat >= 0", name="ck_rides_price_non_negative"),
        Index("idx_rides_driver", "driver_id", "created_at"),
        Index("idx_rides_status_date", "status", "date"),
        Index("idx_rides_listing", "confirmed", "status", "available_seats"),
    )

    # Server-generated timestamps are fetched on flush, not lazily.
    __mapper_args__ = {"eager_defaults": True}


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Nullable so a deleted ride leaves its (cancelled) bookings behind.
    ride_id = Column(
        Integer, ForeignKey("rides.id", ondelete="SET NULL"), nullable=True
    )
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=False)
    seats_booked = Column(Integer, nullable=False)

    # Snapshot of the ride at booking time
    pickup_location = Column(String(255), nullable=False)
    drop_location = Column(String(255), nullable=False)
    ride_datetime = Column(DateTime, nullable=False)

    booking_status = Column(
        _status_type(BookingStatus, "booking_status"),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    payment_status = Column(
        _status_type(PaymentStatus, "payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("seats_booked >= 1", name="ck_bookings_seats_positive"),
        Index("idx_bookings_student", "student_id", "created_at"),
        Index("idx_bookings_driver", "driver_id", "created_at"),
        Index("idx_bookings_ride_status", "ride_id", "booking_status"),
    )

    __mapper_args__ = {"eager_defaults": True}
