"""
Notification pipeline: dispatcher -> Redis outbox -> worker -> Expo.

Redis is mocked with ``AsyncMock``; Expo with ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from campuspool.infrastructure.outbox import NotificationOutbox
from campuspool.infrastructure.push import ExpoPushClient, PushMessage
from campuspool.services.notifications import NotificationDispatcher
from campuspool.workers.notifier import run_delivery_cycle


def _outbox_with(redis_mock) -> NotificationOutbox:
    async def factory():
        return redis_mock

    return NotificationOutbox(client_factory=factory, key="test:outbox")


MESSAGE = PushMessage(
    to="ExponentPushToken[abc]",
    title="Booking Confirmed!",
    body="Your booking for 1 seat(s) from Library to City Mall has been confirmed",
    data={"type": "booking_confirmed", "bookingId": "7", "rideId": "3"},
)


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_enqueues_message(self):
        redis = AsyncMock()
        dispatcher = NotificationDispatcher(_outbox_with(redis))

        dispatcher.notify(" ExponentPushToken[abc] ", MESSAGE.title, MESSAGE.body, MESSAGE.data)
        await dispatcher.drain()

        redis.lpush.assert_awaited_once()
        key, raw = redis.lpush.await_args.args
        assert key == "test:outbox"
        assert PushMessage.from_json(raw) == MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "   "])
    async def test_missing_token_is_a_no_op(self, token):
        redis = AsyncMock()
        dispatcher = NotificationDispatcher(_outbox_with(redis))

        dispatcher.notify(token, "Title", "Body")
        await dispatcher.drain()

        redis.lpush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_outbox_failure_is_swallowed_and_logged(self, caplog):
        redis = AsyncMock()
        redis.lpush.side_effect = ConnectionError("redis down")
        dispatcher = NotificationDispatcher(_outbox_with(redis))

        dispatcher.notify("ExponentPushToken[abc]", "Title", "Body")
        await dispatcher.drain()

        assert "Failed to queue push notification" in caplog.text


class TestOutbox:
    @pytest.mark.asyncio
    async def test_pop_decodes_message(self):
        redis = AsyncMock()
        redis.brpop.return_value = ("test:outbox", MESSAGE.to_json())

        assert await _outbox_with(redis).pop(timeout=1) == MESSAGE
        redis.brpop.assert_awaited_once_with(["test:outbox"], timeout=1)

    @pytest.mark.asyncio
    async def test_pop_timeout(self):
        redis = AsyncMock()
        redis.brpop.return_value = None
        assert await _outbox_with(redis).pop(timeout=1) is None

    @pytest.mark.asyncio
    async def test_malformed_entry_is_dropped(self):
        redis = AsyncMock()
        redis.brpop.return_value = ("test:outbox", "{not json")
        assert await _outbox_with(redis).pop(timeout=1) is None


class TestExpoPushClient:
    @pytest.mark.asyncio
    async def test_sends_expo_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"status": "ok", "id": "ticket-1"}})

        client = ExpoPushClient(
            url="https://push.test/send", transport=httpx.MockTransport(handler)
        )
        try:
            assert await client.send(MESSAGE) is True
        finally:
            await client.aclose()

        assert seen["url"] == "https://push.test/send"
        assert seen["body"] == {
            "to": MESSAGE.to,
            "sound": "default",
            "title": MESSAGE.title,
            "body": MESSAGE.body,
            "data": MESSAGE.data,
            "priority": "high",
        }

    @pytest.mark.asyncio
    async def test_error_ticket_is_a_failure(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(
                200,
                json={"data": [{"status": "error", "message": "DeviceNotRegistered"}]},
            )
        )
        client = ExpoPushClient(url="https://push.test/send", transport=transport)
        try:
            assert await client.send(MESSAGE) is False
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_a_failure(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = ExpoPushClient(
            url="https://push.test/send", transport=httpx.MockTransport(handler)
        )
        try:
            assert await client.send(MESSAGE) is False
        finally:
            await client.aclose()


class TestDeliveryCycle:
    @pytest.mark.asyncio
    async def test_delivers_one_message(self):
        outbox = AsyncMock(spec=NotificationOutbox)
        outbox.pop.return_value = MESSAGE
        push = AsyncMock(spec=ExpoPushClient)
        push.send.return_value = True

        assert await run_delivery_cycle(outbox, push, timeout=1) is True
        push.send.assert_awaited_once_with(MESSAGE)

    @pytest.mark.asyncio
    async def test_idle_cycle(self):
        outbox = AsyncMock(spec=NotificationOutbox)
        outbox.pop.return_value = None
        push = AsyncMock(spec=ExpoPushClient)

        assert await run_delivery_cycle(outbox, push, timeout=1) is False
        push.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_undeliverable_message_is_dropped(self, caplog):
        outbox = AsyncMock(spec=NotificationOutbox)
        outbox.pop.return_value = MESSAGE
        push = AsyncMock(spec=ExpoPushClient)
        push.send.return_value = False

        assert await run_delivery_cycle(outbox, push, timeout=1) is True
        assert "Dropped undeliverable notification" in caplog.text
