"""FastAPI dependency injection helpers."""

import math
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from campuspool.config import settings
from campuspool.domain.errors import Forbidden
from campuspool.infrastructure.database import async_session_factory
from campuspool.services.notifications import NotificationDispatcher


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_dispatcher(request: Request) -> Optional[NotificationDispatcher]:
    """App-wide dispatcher, or ``None`` when notifications are disabled."""
    return getattr(request.app.state, "dispatcher", None)


# Requester identity is established upstream (gateway / auth service) and
# forwarded as a trusted header; role is implied by which header is set.


def current_driver_id(x_driver_id: int = Header(..., alias="X-Driver-Id")) -> int:
    return x_driver_id


def current_student_id(x_student_id: int = Header(..., alias="X-Student-Id")) -> int:
    return x_student_id


@dataclass(frozen=True)
class Requester:
    """Either role; routes open to both decide what each may do."""

    driver_id: Optional[int] = None
    student_id: Optional[int] = None


def current_requester(
    x_driver_id: Optional[int] = Header(None, alias="X-Driver-Id"),
    x_student_id: Optional[int] = Header(None, alias="X-Student-Id"),
) -> Requester:
    if x_driver_id is None and x_student_id is None:
        raise Forbidden("X-Driver-Id or X-Student-Id header is required")
    return Requester(driver_id=x_driver_id, student_id=x_student_id)


def require_admin(x_admin_secret: str = Header("", alias="X-Admin-Secret")) -> None:
    if not secrets.compare_digest(
        x_admin_secret.encode(), settings.admin_secret.encode()
    ):
        raise Forbidden("Unauthorized. Invalid admin secret.")


@dataclass(frozen=True)
class Paging:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pages(self, total: int) -> int:
        return math.ceil(total / self.limit) if total else 0


def get_paging(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> Paging:
    return Paging(page=page, limit=limit)
