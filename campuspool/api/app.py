"""
FastAPI application factory.

* Registers routes for rides, bookings and admin.
* Starts / stops the background notification worker via lifespan events.
* Maps domain errors onto JSON responses with a stable ``code``.
* Applies rate limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from campuspool.api.errors import register_exception_handlers
from campuspool.api.middleware import limiter
from campuspool.api.routes import accounts, admin, bookings, rides
from campuspool.config import settings
from campuspool.infrastructure.outbox import NotificationOutbox
from campuspool.infrastructure.redis_client import close_redis
from campuspool.services.notifications import NotificationDispatcher
from campuspool.workers import notifier as _notifier

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification worker on startup; stop on shutdown."""
    if settings.notifications_enabled:
        await _notifier.start_notifier()
    yield
    dispatcher = app.state.dispatcher
    if dispatcher is not None:
        await dispatcher.drain()
    if settings.notifications_enabled:
        await _notifier.stop_notifier()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="CampusPool API",
        description=(
            "Drivers publish rides between campus locations and students "
            "book seats on them.  Seat counts stay consistent under "
            "concurrent bookings and cancellations, and each lifecycle "
            "change is pushed to the affected party."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    app.state.dispatcher = (
        NotificationDispatcher(NotificationOutbox())
        if settings.notifications_enabled
        else None
    )

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(accounts.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
