"""WebSocket gateway for realtime events and typing presence."""

import json
from typing import Any

import structlog
import ulid
from aiohttp import WSMsgType, web

from huddle.application.services.access import ConversationAccess
from huddle.application.services.fanout_router import FanOutRouter, SubscriptionHandle
from huddle.application.services.presence import PresenceHandle, TypingPresence
from huddle.config.models import RealtimeConfig
from huddle.domain.entities.change import RealtimeEvent, RealtimeEventType
from huddle.domain.errors import HuddleError, InvalidRequestError
from huddle.domain.repositories import MembershipRepository


class RealtimeConnection:
    """Per-socket state: open subscriptions and presence registrations."""

    def __init__(self, ws: web.WebSocketResponse, user_id: str, username: str) -> None:
        self.id = str(ulid.new())
        self.ws = ws
        self.user_id = user_id
        self.username = username
        self.subscriptions: dict[str, SubscriptionHandle] = {}
        self.typing: dict[str, PresenceHandle] = {}

    async def send(self, payload: dict[str, Any]) -> None:
        if not self.ws.closed:
            await self.ws.send_json(payload)


class RealtimeGateway:
    """Serves ``GET /api/v1/realtime``.

    Clients send JSON commands with an ``action`` field:

    - ``subscribe`` / ``unsubscribe`` with ``conversation`` set to
      ``channel:<id>``, ``dm:<id>`` or ``thread:<message id>``
    - ``subscribe_typing`` / ``unsubscribe_typing`` with ``channel_id``
    - ``typing_start`` / ``typing_stop`` with ``channel_id``

    Every handle a socket opened is released when it disconnects.
    """

    def __init__(
        self,
        router: FanOutRouter,
        presence: TypingPresence,
        access: ConversationAccess,
        membership: MembershipRepository,
        config: RealtimeConfig,
        logger: structlog.BoundLogger,
    ) -> None:
        self._router = router
        self._presence = presence
        self._access = access
        self._membership = membership
        self._config = config
        self._logger = logger
        self._connections: dict[str, RealtimeConnection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def handle(self, request: web.Request, user_id: str) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self._config.heartbeat_interval)
        await ws.prepare(request)

        user = await self._membership.get_user(user_id)
        connection = RealtimeConnection(ws, user_id, user.username if user else user_id)
        self._connections[connection.id] = connection
        self._logger.info("Realtime client connected", connection_id=connection.id, user_id=user_id)

        await connection.send(
            {
                "type": "welcome",
                "connection_id": connection.id,
                "typing_timeout": self._config.typing_timeout,
            }
        )
        try:
            async for message in ws:
                if message.type == WSMsgType.TEXT:
                    await self._handle_command(connection, message.data)
                elif message.type == WSMsgType.ERROR:
                    self._logger.warning(
                        "Realtime connection error",
                        connection_id=connection.id,
                        error=str(ws.exception()),
                    )
                    break
        finally:
            await self._disconnect(connection)

        return ws

    async def close(self) -> None:
        """Close every open socket."""
        for connection in list(self._connections.values()):
            await connection.ws.close()

    async def _handle_command(self, connection: RealtimeConnection, raw: str) -> None:
        try:
            command = json.loads(raw)
        except json.JSONDecodeError:
            await connection.send({"type": "error", "error": "Invalid JSON"})
            return

        action = command.get("action") if isinstance(command, dict) else None
        try:
            if not isinstance(command, dict):
                raise InvalidRequestError("Command must be a JSON object")
            handler = self._commands().get(action)  # type: ignore[arg-type]
            if handler is None:
                raise InvalidRequestError(f"Unknown action: {action}")
            await handler(connection, command)
        except HuddleError as e:
            await connection.send({"type": "error", "action": action, "error": str(e)})

    def _commands(self) -> dict[str, Any]:
        return {
            "subscribe": self._subscribe,
            "unsubscribe": self._unsubscribe,
            "subscribe_typing": self._subscribe_typing,
            "unsubscribe_typing": self._unsubscribe_typing,
            "typing_start": self._typing_start,
            "typing_stop": self._typing_stop,
        }

    async def _subscribe(self, connection: RealtimeConnection, command: dict[str, Any]) -> None:
        key = _require(command, "conversation")
        await self._access.ensure_can_subscribe(connection.user_id, key)

        if key not in connection.subscriptions:

            async def forward(event: RealtimeEvent) -> None:
                if event.type == RealtimeEventType.SUBSCRIPTION_FAILED:
                    connection.subscriptions.pop(key, None)
                await connection.send(event.to_wire())

            connection.subscriptions[key] = await self._router.subscribe(key, forward)

        await connection.send({"type": "subscribed", "conversation": key})

    async def _unsubscribe(self, connection: RealtimeConnection, command: dict[str, Any]) -> None:
        key = _require(command, "conversation")
        handle = connection.subscriptions.pop(key, None)
        if handle is not None:
            await handle.close()
        await connection.send({"type": "unsubscribed", "conversation": key})

    async def _subscribe_typing(
        self, connection: RealtimeConnection, command: dict[str, Any]
    ) -> None:
        channel_id = _require(command, "channel_id")
        await self._access.ensure_channel_member(connection.user_id, channel_id)
        if channel_id in connection.typing:
            return

        async def forward(users: list[dict[str, Any]]) -> None:
            await connection.send(
                {"type": "typing", "conversation": f"channel:{channel_id}", "users": users}
            )

        connection.typing[channel_id] = await self._presence.join(
            channel_id, connection.user_id, forward
        )

    async def _unsubscribe_typing(
        self, connection: RealtimeConnection, command: dict[str, Any]
    ) -> None:
        channel_id = _require(command, "channel_id")
        handle = connection.typing.pop(channel_id, None)
        if handle is not None:
            await handle.close()
        await self._presence.untrack(channel_id, connection.id)

    async def _typing_start(self, connection: RealtimeConnection, command: dict[str, Any]) -> None:
        await self._announce(connection, command, is_typing=True)

    async def _typing_stop(self, connection: RealtimeConnection, command: dict[str, Any]) -> None:
        await self._announce(connection, command, is_typing=False)

    async def _announce(
        self, connection: RealtimeConnection, command: dict[str, Any], is_typing: bool
    ) -> None:
        channel_id = _require(command, "channel_id")
        await self._access.ensure_channel_member(connection.user_id, channel_id)
        await self._presence.track(
            channel_id,
            connection.id,
            connection.user_id,
            connection.username,
            is_typing=is_typing,
        )

    async def _disconnect(self, connection: RealtimeConnection) -> None:
        self._connections.pop(connection.id, None)
        for handle in list(connection.subscriptions.values()):
            await handle.close()
        connection.subscriptions.clear()
        for presence_handle in list(connection.typing.values()):
            await presence_handle.close()
        connection.typing.clear()
        await self._presence.untrack_all(connection.id)
        self._logger.info("Realtime client disconnected", connection_id=connection.id)


def _require(command: dict[str, Any], field: str) -> str:
    value = command.get(field)
    if not isinstance(value, str) or not value:
        raise InvalidRequestError(f"Missing required field: {field}")
    return value
