"""
Ride endpoints
==============

POST   /api/v1/rides                  -- driver publishes a ride (pending)
GET    /api/v1/rides                  -- browse open rides
GET    /api/v1/rides/driver/rides     -- the calling driver's rides
GET    /api/v1/rides/{ride_id}        -- ride details
PUT    /api/v1/rides/{ride_id}/confirm -- driver opens the ride for booking
PATCH  /api/v1/rides/{ride_id}/status -- driver cancels or completes the ride
DELETE /api/v1/rides/{ride_id}        -- driver removes a ride without confirmed bookings
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.api.dependencies import (
    Paging,
    current_driver_id,
    get_db,
    get_dispatcher,
    get_paging,
)
from campuspool.api.middleware import limiter
from campuspool.api.schemas import (
    ErrorResponse,
    RideCreateRequest,
    RideDeletedResponse,
    RidePage,
    RideResponse,
    RideStatusUpdateRequest,
)
from campuspool.config import settings
from campuspool.services.notifications import NotificationDispatcher
from campuspool.services.ride_lifecycle import RideLifecycle

router = APIRouter(prefix="/rides", tags=["rides"])

_CONFLICT = {409: {"model": ErrorResponse}}


def _page(items, total: int, paging: Paging) -> RidePage:
    return RidePage(
        count=len(items),
        total=total,
        page=paging.page,
        pages=paging.pages(total),
        rides=items,
    )


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Publish a ride",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    driver_id: int = Depends(current_driver_id),
    db: AsyncSession = Depends(get_db),
):
    return await RideLifecycle(db).create(driver_id, **body.model_dump())


@router.get("", response_model=RidePage, summary="Browse rides open for booking")
@limiter.limit(settings.rate_limit)
async def list_open_rides(
    request: Request,
    on_date: Optional[date] = Query(None, alias="date"),
    pickup_location: Optional[str] = Query(None),
    drop_location: Optional[str] = Query(None),
    paging: Paging = Depends(get_paging),
    db: AsyncSession = Depends(get_db),
):
    items, total = await RideLifecycle(db).list_open(
        on_date=on_date,
        pickup_location=pickup_location,
        drop_location=drop_location,
        offset=paging.offset,
        limit=paging.limit,
    )
    return _page(items, total, paging)


@router.get("/driver/rides", response_model=RidePage, summary="List the driver's own rides")
@limiter.limit(settings.rate_limit)
async def list_driver_rides(
    request: Request,
    driver_id: int = Depends(current_driver_id),
    paging: Paging = Depends(get_paging),
    db: AsyncSession = Depends(get_db),
):
    items, total = await RideLifecycle(db).list_for_driver(
        driver_id, offset=paging.offset, limit=paging.limit
    )
    return _page(items, total, paging)


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get a ride",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await RideLifecycle(db).get(ride_id)


@router.put(
    "/{ride_id}/confirm",
    response_model=RideResponse,
    summary="Open a pending ride for booking",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def confirm_ride(
    request: Request,
    ride_id: int,
    driver_id: int = Depends(current_driver_id),
    db: AsyncSession = Depends(get_db),
):
    return await RideLifecycle(db).confirm(ride_id, driver_id)


@router.patch(
    "/{ride_id}/status",
    response_model=RideResponse,
    summary="Cancel or complete a ride",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def update_ride_status(
    request: Request,
    ride_id: int,
    body: RideStatusUpdateRequest,
    driver_id: int = Depends(current_driver_id),
    db: AsyncSession = Depends(get_db),
):
    return await RideLifecycle(db).update_status(ride_id, driver_id, body.status)


@router.delete(
    "/{ride_id}",
    response_model=RideDeletedResponse,
    summary="Delete a ride with no confirmed bookings",
    responses=_CONFLICT,
)
@limiter.limit(settings.rate_limit)
async def delete_ride(
    request: Request,
    ride_id: int,
    driver_id: int = Depends(current_driver_id),
    db: AsyncSession = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    cancelled = await RideLifecycle(db, dispatcher).delete(ride_id, driver_id)
    return RideDeletedResponse(cancelled_bookings=len(cancelled))
