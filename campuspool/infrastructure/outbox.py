"""
Notification outbox on a Redis list.

Producers ``LPUSH``; the delivery worker ``BRPOP``s, so messages are handed
out FIFO and each one to a single worker even with several API processes.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis

from campuspool.config import settings
from .push import PushMessage
from .redis_client import get_redis

logger = logging.getLogger(__name__)


class NotificationOutbox:
    def __init__(
        self,
        client_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        key: str = settings.notification_outbox_key,
    ):
        self._client_factory = client_factory
        self.key = key

    async def push(self, message: PushMessage) -> None:
        redis = await self._client_factory()
        await redis.lpush(self.key, message.to_json())

    async def pop(self, timeout: int) -> Optional[PushMessage]:
        """Block up to *timeout* seconds for the oldest message."""
        redis = await self._client_factory()
        item = await redis.brpop([self.key], timeout=timeout)
        if not item:
            return None
        _, raw = item
        try:
            return PushMessage.from_json(raw)
        except (ValueError, TypeError):
            logger.exception("Dropping malformed outbox entry: %r", raw)
            return None
