"""
Booking endpoints
=================

POST /api/v1/bookings                      -- student requests seats on an open ride
GET  /api/v1/bookings/me                   -- the calling student's bookings
GET  /api/v1/bookings/driver               -- bookings on the calling driver's rides
PUT  /api/v1/bookings/{booking_id}/cancel  -- student withdraws
PUT  /api/v1/bookings/{booking_id}/confirm -- driver accepts
PUT  /api/v1/bookings/{booking_id}/reject  -- driver turns the booking down
GET  /api/v1/bookings/{booking_id}         -- one booking, for its student or driver
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.api.dependencies import (
    Paging,
    Requester,
    current_driver_id,
    current_requester,
    current_student_id,
    get_db,
    get_dispatcher,
    get_paging,
)
from campuspool.api.middleware import limiter
from campuspool.api.schemas import (
    BookingCreateRequest,
    BookingPage,
    BookingResponse,
    ErrorResponse,
)
from campuspool.config import settings
from campuspool.services.booking_lifecycle import BookingLifecycle
from campuspool.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/bookings", tags=["bookings"])

_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _page(items, total: int, paging: Paging) -> BookingPage:
    return BookingPage(
        count=len(items),
        total=total,
        page=paging.page,
        pages=paging.pages(total),
        bookings=items,
    )


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Book seats on a ride",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    student_id: int = Depends(current_student_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    return await BookingLifecycle(db, dispatcher).create_booking(
        body.ride_id, student_id, body.seats_booked
    )


@router.get("/me", response_model=BookingPage, summary="List the student's bookings")
@limiter.limit(settings.rate_limit)
async def list_my_bookings(
    request: Request,
    student_id: int = Depends(current_student_id),
    paging: Paging = Depends(get_paging),
    db: AsyncSession = Depends(get_db),
):
    items, total = await BookingLifecycle(db).list_for_student(
        student_id, offset=paging.offset, limit=paging.limit
    )
    return _page(items, total, paging)


@router.get(
    "/driver",
    response_model=BookingPage,
    summary="List bookings on the driver's rides",
)
@limiter.limit(settings.rate_limit)
async def list_driver_bookings(
    request: Request,
    driver_id: int = Depends(current_driver_id),
    paging: Paging = Depends(get_paging),
    db: AsyncSession = Depends(get_db),
):
    items, total = await BookingLifecycle(db).list_for_driver(
        driver_id, offset=paging.offset, limit=paging.limit
    )
    return _page(items, total, paging)


@router.put(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    student_id: int = Depends(current_student_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    return await BookingLifecycle(db, dispatcher).cancel_booking(booking_id, student_id)


@router.put(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    summary="Accept a pending booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def confirm_booking(
    request: Request,
    booking_id: int,
    driver_id: int = Depends(current_driver_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    return await BookingLifecycle(db, dispatcher).confirm_booking(booking_id, driver_id)


@router.put(
    "/{booking_id}/reject",
    response_model=BookingResponse,
    summary="Reject a booking",
    responses=_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def reject_booking(
    request: Request,
    booking_id: int,
    driver_id: int = Depends(current_driver_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    return await BookingLifecycle(db, dispatcher).reject_booking(booking_id, driver_id)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get one booking",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    requester: Requester = Depends(current_requester),
    db: AsyncSession = Depends(get_db),
):
    return await BookingLifecycle(db).get(
        booking_id, student_id=requester.student_id, driver_id=requester.driver_id
    )
