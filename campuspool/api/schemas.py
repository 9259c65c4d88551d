"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from campuspool.domain.enums import BookingStatus, PaymentStatus, RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    pickup_location: str = Field(..., min_length=1, max_length=255)
    drop_location: str = Field(..., min_length=1, max_length=255)
    date: date
    time: str = Field(..., min_length=1, max_length=20, examples=["10:00 AM"])
    price_per_seat: float = Field(..., ge=0)
    total_seats: int = Field(..., ge=1, le=50)


class RideStatusUpdateRequest(BaseModel):
    status: RideStatus = Field(..., description="Either 'cancelled' or 'completed'.")


class BookingCreateRequest(BaseModel):
    ride_id: int
    seats_booked: int = Field(..., ge=1)


class NotificationTokenRequest(BaseModel):
    notification_token: str = Field(..., max_length=255, examples=["ExponentPushToken[xxxxxxxx]"])


# ── Responses ─────────────────────────────────────────────────────────


class DriverSummary(BaseModel):
    id: int
    name: str
    phone: str
    vehicle_model: Optional[str] = None
    vehicle_number: Optional[str] = None
    verified: bool

    model_config = {"from_attributes": True}


class DriverResponse(DriverSummary):
    created_at: Optional[datetime] = None


class RideResponse(BaseModel):
    id: int
    driver_id: int
    driver: Optional[DriverSummary] = None
    pickup_location: str
    drop_location: str
    date: date
    time: str
    price_per_seat: float
    total_seats: int
    available_seats: int
    status: RideStatus
    confirmed: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    ride_id: Optional[int] = None
    student_id: int
    driver_id: int
    seats_booked: int
    pickup_location: str
    drop_location: str
    ride_datetime: datetime
    booking_status: BookingStatus
    payment_status: PaymentStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RidePage(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    rides: list[RideResponse]


class BookingPage(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    bookings: list[BookingResponse]


class DriverPage(BaseModel):
    count: int
    total: int
    page: int
    pages: int
    drivers: list[DriverResponse]


class RideDeletedResponse(BaseModel):
    message: str = "Ride deleted successfully"
    cancelled_bookings: int = 0


class LedgerAuditResponse(BaseModel):
    ride_id: int
    total_seats: int
    available_seats: int
    held_seats: int
    status: RideStatus
    expected_status: RideStatus
    consistent: bool


class MessageResponse(BaseModel):
    message: str


class DriverVerificationResponse(MessageResponse):
    driver: DriverResponse


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: str
