"""Initial schema: drivers, students, rides and bookings.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _status(*values: str, name: str) -> sa.Enum:
    # Stored as VARCHAR so new statuses need no type migration.
    return sa.Enum(*values, name=name, native_enum=False, length=20)


def upgrade() -> None:
    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("vehicle_model", sa.String(120), nullable=True),
        sa.Column("vehicle_number", sa.String(32), nullable=True),
        sa.Column("verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("notification_token", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── students ──────────────────────────────────────────────────────
    op.create_table(
        "students",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("registration_number", sa.String(64), nullable=True),
        sa.Column("notification_token", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False
        ),
        sa.Column("pickup_location", sa.String(255), nullable=False),
        sa.Column("drop_location", sa.String(255), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("time", sa.String(20), nullable=False),
        sa.Column("departs_at", sa.DateTime, nullable=True),
        sa.Column("price_per_seat", sa.Float, nullable=False),
        sa.Column("total_seats", sa.Integer, nullable=False),
        sa.Column("available_seats", sa.Integer, nullable=False),
        sa.Column(
            "status",
            _status(
                "pending", "open", "full", "cancelled", "completed",
                name="ride_status",
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("confirmed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("total_seats >= 1", name="ck_rides_total_seats_positive"),
        sa.CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_rides_available_seats_bounds",
        ),
        sa.CheckConstraint("price_per_seat >= 0", name="ck_rides_price_non_negative"),
    )
    op.create_index("idx_rides_driver", "rides", ["driver_id", "created_at"])
    op.create_index("idx_rides_status_date", "rides", ["status", "date"])
    op.create_index(
        "idx_rides_listing", "rides", ["confirmed", "status", "available_seats"]
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ride_id",
            sa.Integer,
            sa.ForeignKey("rides.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "student_id", sa.Integer, sa.ForeignKey("students.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False
        ),
        sa.Column("seats_booked", sa.Integer, nullable=False),
        sa.Column("pickup_location", sa.String(255), nullable=False),
        sa.Column("drop_location", sa.String(255), nullable=False),
        sa.Column("ride_datetime", sa.DateTime, nullable=False),
        sa.Column(
            "booking_status",
            _status(
                "pending", "confirmed", "cancelled", "rejected", "completed",
                name="booking_status",
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "payment_status",
            _status("pending", "paid", "failed", name="payment_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("seats_booked >= 1", name="ck_bookings_seats_positive"),
    )
    op.create_index("idx_bookings_student", "bookings", ["student_id", "created_at"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id", "created_at"])
    op.create_index(
        "idx_bookings_ride_status", "bookings", ["ride_id", "booking_status"]
    )


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("rides")
    op.drop_table("students")
    op.drop_table("drivers")
