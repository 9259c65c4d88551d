"""
Fire-and-forget notification dispatch.

``notify`` returns immediately.  The message is pushed onto the outbox by a
detached task; a failure there is logged and dropped, so it can neither
block nor roll back the transition that produced it.  Delivery to devices
happens later in ``campuspool.workers.notifier``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from campuspool.infrastructure.outbox import NotificationOutbox
from campuspool.infrastructure.push import PushMessage

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, outbox: NotificationOutbox):
        self.outbox = outbox
        self._pending: set[asyncio.Task] = set()

    def notify(
        self,
        recipient_token: Optional[str],
        title: str,
        body: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        if not recipient_token or not str(recipient_token).strip():
            logger.debug("No notification token provided, skipping %r", title)
            return

        message = PushMessage(
            to=str(recipient_token).strip(),
            title=title,
            body=body,
            data=dict(metadata or {}),
        )
        task = asyncio.get_running_loop().create_task(self._enqueue(message))
        # Keep a reference so the task is not garbage-collected mid-flight.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight enqueues (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def _enqueue(self, message: PushMessage) -> None:
        try:
            await self.outbox.push(message)
        except Exception:
            logger.exception("Failed to queue push notification %r", message.title)
