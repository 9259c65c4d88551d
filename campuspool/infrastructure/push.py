"""
Expo push-notification client.

Docs: https://docs.expo.dev/push-notifications/sending-notifications/

``send`` never raises for delivery problems: transport errors, non-JSON
bodies and non-``ok`` tickets are logged and reported as ``False``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import httpx

from campuspool.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushMessage:
    to: str
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "to": self.to,
            "sound": "default",
            "title": self.title,
            "body": self.body,
            "data": self.data,
            "priority": "high",
        }

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "PushMessage":
        return cls(**json.loads(raw))


class ExpoPushClient:
    def __init__(
        self,
        url: str = settings.expo_push_url,
        timeout: float = settings.push_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Accept-Encoding": "gzip, deflate",
                "Content-Type": "application/json",
            },
        )

    async def send(self, message: PushMessage) -> bool:
        try:
            response = await self._client.post(self.url, json=message.to_payload())
            result = response.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("Error sending push notification %r", message.title)
            return False

        ticket = result.get("data") if isinstance(result, dict) else None
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else None
        if isinstance(ticket, dict) and ticket.get("status") == "ok":
            logger.info("Push notification sent: %s", message.title)
            return True

        logger.error("Failed to send push notification %r: %s", message.title, result)
        return False

    async def aclose(self) -> None:
        await self._client.aclose()
