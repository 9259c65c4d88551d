"""
Admin / observability endpoints
===============================

GET /api/v1/admin/health                       -- simple health check
GET /api/v1/admin/rides/{ride_id}/ledger       -- seat ledger consistency for one ride
GET /api/v1/admin/drivers                      -- drivers, filtered by verification / search
GET /api/v1/admin/drivers/{driver_id}          -- one driver
PUT /api/v1/admin/drivers/{driver_id}/verify   -- approve a driver (pushes to them)
PUT /api/v1/admin/drivers/{driver_id}/unverify -- withdraw approval

Driver endpoints require the ``X-Admin-Secret`` header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.api.dependencies import (
    Paging,
    get_db,
    get_dispatcher,
    get_paging,
    require_admin,
)
from campuspool.api.middleware import limiter
from campuspool.api.schemas import (
    DriverPage,
    DriverResponse,
    DriverVerificationResponse,
    ErrorResponse,
    HealthResponse,
    LedgerAuditResponse,
)
from campuspool.config import settings
from campuspool.services.accounts import AccountService
from campuspool.services.notifications import NotificationDispatcher
from campuspool.services.ride_lifecycle import RideLifecycle

router = APIRouter(prefix="/admin", tags=["admin"])

_DRIVER_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get(
    "/rides/{ride_id}/ledger",
    response_model=LedgerAuditResponse,
    summary="Compare a ride's seat counter against its seat-holding bookings",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_ride_ledger(
    request: Request,
    ride_id: int,
    db: AsyncSession = Depends(get_db),
):
    audit = await RideLifecycle(db).ledger_audit(ride_id)
    return LedgerAuditResponse(
        ride_id=audit.ride_id,
        total_seats=audit.total_seats,
        available_seats=audit.available_seats,
        held_seats=audit.held_seats,
        status=audit.status,
        expected_status=audit.expected_status,
        consistent=audit.consistent,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()


# ── Drivers ──────────────────────────────────────────────────────────


@router.get(
    "/drivers",
    response_model=DriverPage,
    summary="List drivers, newest first",
    dependencies=[Depends(require_admin)],
    responses={403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    verified: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    paging: Paging = Depends(get_paging),
    db: AsyncSession = Depends(get_db),
):
    items, total = await AccountService(db).list_drivers(
        verified=verified, search=search, offset=paging.offset, limit=paging.limit
    )
    return DriverPage(
        count=len(items),
        total=total,
        page=paging.page,
        pages=paging.pages(total),
        drivers=items,
    )


@router.get(
    "/drivers/{driver_id}",
    response_model=DriverResponse,
    summary="Get one driver",
    dependencies=[Depends(require_admin)],
    responses=_DRIVER_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await AccountService(db).get_driver(driver_id)


@router.put(
    "/drivers/{driver_id}/verify",
    response_model=DriverVerificationResponse,
    summary="Verify a driver",
    dependencies=[Depends(require_admin)],
    responses=_DRIVER_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def verify_driver(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
    dispatcher: Optional[NotificationDispatcher] = Depends(get_dispatcher),
):
    driver = await AccountService(db, dispatcher).verify_driver(driver_id)
    return DriverVerificationResponse(
        message="Driver verified successfully",
        driver=DriverResponse.model_validate(driver),
    )


@router.put(
    "/drivers/{driver_id}/unverify",
    response_model=DriverVerificationResponse,
    summary="Withdraw a driver's verification",
    dependencies=[Depends(require_admin)],
    responses=_DRIVER_ERRORS,
)
@limiter.limit(settings.rate_limit)
async def unverify_driver(
    request: Request,
    driver_id: int,
    db: AsyncSession = Depends(get_db),
):
    driver = await AccountService(db).unverify_driver(driver_id)
    return DriverVerificationResponse(
        message="Driver unverified successfully",
        driver=DriverResponse.model_validate(driver),
    )
