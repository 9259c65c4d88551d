"""
Account endpoints
=================

PUT /api/v1/notification-token -- register the caller's device push token
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.api.dependencies import Requester, current_requester, get_db
from campuspool.api.middleware import limiter
from campuspool.api.schemas import (
    ErrorResponse,
    MessageResponse,
    NotificationTokenRequest,
)
from campuspool.config import settings
from campuspool.services.accounts import AccountService

router = APIRouter(tags=["accounts"])


@router.put(
    "/notification-token",
    response_model=MessageResponse,
    summary="Save the caller's Expo push token",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def save_notification_token(
    request: Request,
    body: NotificationTokenRequest,
    requester: Requester = Depends(current_requester),
    db: AsyncSession = Depends(get_db),
):
    await AccountService(db).save_notification_token(
        body.notification_token,
        driver_id=requester.driver_id,
        student_id=requester.student_id,
    )
    return MessageResponse(message="Notification token saved successfully")
