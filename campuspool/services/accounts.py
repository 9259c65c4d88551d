"""
Account upkeep: push tokens for both roles and driver verification.

Verification flips are conditional on the flag that was observed, so two
admins racing to verify the same driver produce one push, not two.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.domain.errors import (
    DriverNotFound,
    Forbidden,
    ValidationFailed,
    VerificationUnchanged,
)
from campuspool.infrastructure.models import DriverModel
from campuspool.infrastructure.repositories import DriverRepository, StudentRepository
from campuspool.services.announcements import Announcer
from campuspool.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.session = session
        self.drivers = DriverRepository(session)
        self.students = StudentRepository(session)
        self.announcer = Announcer(session, dispatcher)

    async def save_notification_token(
        self,
        token: str,
        *,
        driver_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> None:
        """Store the device token for exactly one driver or one student."""
        token = (token or "").strip()
        if not token:
            raise ValidationFailed("Notification token is required")
        if (driver_id is None) == (student_id is None):
            raise ValidationFailed("Identify as exactly one driver or one student")

        if driver_id is not None:
            saved = await self.drivers.set_notification_token(driver_id, token)
            role, account_id = "driver", driver_id
        else:
            saved = await self.students.set_notification_token(student_id, token)
            role, account_id = "student", student_id

        if not saved:
            await self.session.rollback()
            raise Forbidden(f"{role.capitalize()} account not found")

        await self.session.commit()
        logger.info("Notification token saved for %s %s", role, account_id)

    # ── Driver verification ──────────────────────────────────────────

    async def list_drivers(
        self,
        *,
        verified: Optional[bool] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[DriverModel], int]:
        return await self.drivers.list_drivers(
            verified=verified,
            search=(search or "").strip() or None,
            offset=offset,
            limit=limit,
        )

    async def get_driver(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise DriverNotFound()
        return driver

    async def verify_driver(self, driver_id: int) -> DriverModel:
        driver = await self._set_verified(driver_id, True, "Driver is already verified")
        await self.announcer.driver_verified(driver)
        return driver

    async def unverify_driver(self, driver_id: int) -> DriverModel:
        return await self._set_verified(driver_id, False, "Driver is not verified")

    async def _set_verified(
        self, driver_id: int, target: bool, unchanged: str
    ) -> DriverModel:
        driver = await self.get_driver(driver_id)
        if bool(driver.verified) == target:
            raise VerificationUnchanged(unchanged)

        if not await self.drivers.set_verified_if(driver_id, not target, target):
            await self.session.rollback()
            if await self.drivers.get_by_id(driver_id, refresh=True) is None:
                raise DriverNotFound()
            raise VerificationUnchanged(unchanged)

        await self.session.commit()
        logger.info("Driver %s verified=%s", driver_id, target)
        return await self.drivers.get_by_id(driver_id, refresh=True)
