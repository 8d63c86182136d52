"""Tests for RealtimeGateway over a WebSocket."""

import asyncio
from collections.abc import AsyncIterator, Callable
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import structlog
from aiohttp import web
from aiohttp.test_utils import TestClient

from huddle.application.handlers.change_handlers import (
    ChangeHandlerRegistry,
    MessageChangeHandler,
)
from huddle.application.services.access import ConversationAccess
from huddle.application.services.fanout_router import FanOutRouter
from huddle.application.services.presence import TypingPresence
from huddle.config.models import RealtimeConfig
from huddle.domain.entities.change import ChangeOperation, ChangeTable, DataChange
from huddle.infrastructure.realtime.change_stream import InMemoryChangeBroker
from huddle.presentation.http.realtime import RealtimeGateway

MEMBERS = {"c1": {"alice", "bob"}}


async def _eventually(predicate: Callable[[], bool]) -> None:
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


@pytest.fixture
def broker() -> InMemoryChangeBroker:
    return InMemoryChangeBroker()


@pytest.fixture
async def router(broker: InMemoryChangeBroker) -> AsyncIterator[FanOutRouter]:
    handlers = ChangeHandlerRegistry()
    handlers.register(ChangeTable.MESSAGES, MessageChangeHandler())
    router = FanOutRouter(broker, handlers, RealtimeConfig(), structlog.get_logger())
    yield router
    await router.close()


@pytest.fixture
def gateway(router: FanOutRouter) -> RealtimeGateway:
    membership = AsyncMock()
    membership.get_user.side_effect = lambda user_id: SimpleNamespace(username=user_id)
    membership.is_channel_member.side_effect = (
        lambda channel_id, user_id: user_id in MEMBERS.get(channel_id, set())
    )
    access = ConversationAccess(membership=membership, messages=AsyncMock())
    return RealtimeGateway(
        router=router,
        presence=TypingPresence(logger=structlog.get_logger()),
        access=access,
        membership=membership,
        config=RealtimeConfig(typing_timeout=1.5),
        logger=structlog.get_logger(),
    )


@pytest.fixture
async def client(gateway: RealtimeGateway, aiohttp_client) -> TestClient:
    async def handle(request: web.Request) -> web.WebSocketResponse:
        return await gateway.handle(request, request.headers["X-User-Id"])

    app = web.Application()
    app.router.add_get("/ws", handle)
    return await aiohttp_client(app)


async def _connect(client: TestClient, user_id: str):
    ws = await client.ws_connect("/ws", headers={"X-User-Id": user_id})
    welcome = await ws.receive_json(timeout=1)
    assert welcome["type"] == "welcome"
    return ws


class TestConnection:
    """Tests for the connection lifecycle."""

    async def test_welcome_message(self, client: TestClient) -> None:
        ws = await client.ws_connect("/ws", headers={"X-User-Id": "alice"})

        welcome = await ws.receive_json(timeout=1)

        assert welcome["type"] == "welcome"
        assert welcome["typing_timeout"] == 1.5
        assert welcome["connection_id"]
        await ws.close()

    async def test_invalid_json_reports_error(self, client: TestClient) -> None:
        ws = await _connect(client, "alice")

        await ws.send_str("not json")

        assert await ws.receive_json(timeout=1) == {"type": "error", "error": "Invalid JSON"}
        await ws.close()

    async def test_unknown_action_reports_error(self, client: TestClient) -> None:
        ws = await _connect(client, "alice")

        await ws.send_json({"action": "dance"})

        reply = await ws.receive_json(timeout=1)
        assert reply["type"] == "error"
        assert reply["action"] == "dance"
        await ws.close()

    async def test_disconnect_releases_subscriptions(
        self, client: TestClient, gateway: RealtimeGateway, router: FanOutRouter
    ) -> None:
        ws = await _connect(client, "alice")
        await ws.send_json({"action": "subscribe", "conversation": "channel:c1"})
        await ws.receive_json(timeout=1)
        assert router.subscription_count == 1

        await ws.close()

        await _eventually(lambda: router.subscription_count == 0)
        await _eventually(lambda: gateway.connection_count == 0)


class TestSubscriptions:
    """Tests for subscribe and unsubscribe."""

    async def test_subscribe_receives_changes(
        self, client: TestClient, broker: InMemoryChangeBroker
    ) -> None:
        ws = await _connect(client, "alice")
        await ws.send_json({"action": "subscribe", "conversation": "channel:c1"})

        ack = await ws.receive_json(timeout=1)
        await broker.publish(
            DataChange(
                topics=["channel:c1"],
                table=ChangeTable.MESSAGES,
                operation=ChangeOperation.INSERT,
                new={"id": "m1", "content": "Hello"},
            )
        )
        event = await ws.receive_json(timeout=1)

        assert ack == {"type": "subscribed", "conversation": "channel:c1"}
        assert event == {
            "type": "new_message",
            "conversation": "channel:c1",
            "message": {"id": "m1", "content": "Hello"},
        }
        await ws.close()

    async def test_subscribe_forbidden_for_non_member(
        self, client: TestClient, router: FanOutRouter
    ) -> None:
        ws = await _connect(client, "carol")
        await ws.send_json({"action": "subscribe", "conversation": "channel:c1"})

        reply = await ws.receive_json(timeout=1)

        assert reply["type"] == "error"
        assert reply["action"] == "subscribe"
        assert router.subscription_count == 0
        await ws.close()

    async def test_subscribe_requires_conversation(self, client: TestClient) -> None:
        ws = await _connect(client, "alice")
        await ws.send_json({"action": "subscribe"})

        reply = await ws.receive_json(timeout=1)

        assert reply["error"] == "Missing required field: conversation"
        await ws.close()

    async def test_unsubscribe_acknowledged(
        self, client: TestClient, router: FanOutRouter
    ) -> None:
        ws = await _connect(client, "alice")
        await ws.send_json({"action": "subscribe", "conversation": "channel:c1"})
        await ws.receive_json(timeout=1)

        await ws.send_json({"action": "unsubscribe", "conversation": "channel:c1"})
        reply = await ws.receive_json(timeout=1)

        assert reply == {"type": "unsubscribed", "conversation": "channel:c1"}
        assert router.subscription_count == 0
        await ws.close()


class TestTyping:
    """Tests for typing presence commands."""

    async def test_typing_flow(self, client: TestClient) -> None:
        bob = await _connect(client, "bob")
        alice = await _connect(client, "alice")
        await bob.send_json({"action": "subscribe_typing", "channel_id": "c1"})
        initial = await bob.receive_json(timeout=1)

        await alice.send_json({"action": "typing_start", "channel_id": "c1"})
        started = await bob.receive_json(timeout=1)
        await alice.send_json({"action": "typing_stop", "channel_id": "c1"})
        stopped = await bob.receive_json(timeout=1)

        assert initial == {"type": "typing", "conversation": "channel:c1", "users": []}
        assert started["users"] == [{"user_id": "alice", "username": "alice"}]
        assert stopped["users"] == []
        await alice.close()
        await bob.close()

    async def test_typing_requires_membership(self, client: TestClient) -> None:
        ws = await _connect(client, "carol")
        await ws.send_json({"action": "typing_start", "channel_id": "c1"})

        reply = await ws.receive_json(timeout=1)

        assert reply["type"] == "error"
        assert reply["action"] == "typing_start"
        await ws.close()
