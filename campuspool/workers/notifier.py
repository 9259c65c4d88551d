"""
Background Notification Worker
==============================

Drains the Redis outbox and delivers each message to the Expo push API.

* ``BRPOP`` blocks for at most ``NOTIFICATION_POLL_SECONDS`` so the loop
  notices a stop request promptly.
* Each outbox entry is popped by exactly one worker, so several API
  processes may run this loop side by side.
* Delivery failures are logged and the message is dropped; nothing here
  can affect booking or seat state, which committed before the message was
  queued.
"""

from __future__ import annotations

import asyncio
import logging

from campuspool.config import settings
from campuspool.infrastructure.outbox import NotificationOutbox
from campuspool.infrastructure.push import ExpoPushClient

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_notifier() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(NotificationOutbox(), ExpoPushClient()))
    logger.info(
        "Notification worker started (poll=%ds)", settings.notification_poll_seconds
    )


async def stop_notifier() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Notification worker stopped")


async def run_delivery_cycle(
    outbox: NotificationOutbox,
    push: ExpoPushClient,
    timeout: int = settings.notification_poll_seconds,
) -> bool:
    """Deliver at most one message.  Returns True if one was popped."""
    message = await outbox.pop(timeout)
    if message is None:
        return False
    if not await push.send(message):
        logger.warning("Dropped undeliverable notification %r", message.title)
    return True


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(outbox: NotificationOutbox, push: ExpoPushClient) -> None:
    assert _stop_event is not None
    try:
        while not _stop_event.is_set():
            try:
                await run_delivery_cycle(outbox, push)
            except Exception:
                logger.exception("Unhandled error in notification cycle")
                # Back off so a dead Redis does not spin the loop
                try:
                    await asyncio.wait_for(
                        _stop_event.wait(), timeout=settings.notification_poll_seconds
                    )
                except asyncio.TimeoutError:
                    pass
    finally:
        await push.aclose()
