"""Ephemeral typing presence per channel."""

import itertools
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel
from structlog.stdlib import BoundLogger

TypingListener = Callable[[list[dict[str, Any]]], Awaitable[None]]


class PresenceEntry(BaseModel):
    """State announced by one connection."""

    user_id: str
    username: str
    is_typing: bool = False


class PresenceHandle:
    """A watcher's registration on a channel's presence topic."""

    def __init__(self, presence: "TypingPresence", channel_id: str, watcher_id: int) -> None:
        self._presence = presence
        self.channel_id = channel_id
        self.watcher_id = watcher_id

    async def close(self) -> None:
        await self._presence.leave(self)


class TypingPresence:
    """Tracks who is typing in each channel and pushes the list to watchers.

    Entries are keyed by connection so a user with two open clients is
    tracked per client. Nothing expires here: clients clear their own flag
    after ``typing_timeout`` of inactivity and untrack on disconnect.
    """

    def __init__(self, logger: BoundLogger) -> None:
        self._logger = logger
        self._entries: dict[str, dict[str, PresenceEntry]] = {}
        self._watchers: dict[str, dict[int, tuple[str, TypingListener]]] = {}
        self._watcher_ids = itertools.count(1)

    def typing_users(self, channel_id: str, viewer_id: str) -> list[dict[str, Any]]:
        """Return ``[{user_id, username}]`` typing in the channel, excluding the viewer."""
        seen: set[str] = set()
        typing: list[dict[str, Any]] = []
        for entry in self._entries.get(channel_id, {}).values():
            if not entry.is_typing or entry.user_id == viewer_id or entry.user_id in seen:
                continue
            seen.add(entry.user_id)
            typing.append({"user_id": entry.user_id, "username": entry.username})
        return typing

    async def join(
        self, channel_id: str, viewer_id: str, listener: TypingListener
    ) -> PresenceHandle:
        """Watch a channel; the current list is pushed immediately."""
        watcher_id = next(self._watcher_ids)
        self._watchers.setdefault(channel_id, {})[watcher_id] = (viewer_id, listener)
        await self._notify(channel_id, viewer_id, listener)
        return PresenceHandle(self, channel_id, watcher_id)

    async def leave(self, handle: PresenceHandle) -> None:
        watchers = self._watchers.get(handle.channel_id)
        if watchers is None:
            return
        watchers.pop(handle.watcher_id, None)
        if not watchers:
            del self._watchers[handle.channel_id]

    async def track(
        self,
        channel_id: str,
        presence_key: str,
        user_id: str,
        username: str,
        is_typing: bool,
    ) -> None:
        """Record a connection's announcement and push the new list."""
        self._entries.setdefault(channel_id, {})[presence_key] = PresenceEntry(
            user_id=user_id, username=username, is_typing=is_typing
        )
        await self._broadcast(channel_id)

    async def untrack(self, channel_id: str, presence_key: str) -> None:
        entries = self._entries.get(channel_id)
        if entries is None or presence_key not in entries:
            return
        del entries[presence_key]
        if not entries:
            del self._entries[channel_id]
        await self._broadcast(channel_id)

    async def untrack_all(self, presence_key: str) -> None:
        """Drop a connection's entries from every channel."""
        channels = [
            channel_id
            for channel_id, entries in self._entries.items()
            if presence_key in entries
        ]
        for channel_id in channels:
            await self.untrack(channel_id, presence_key)

    async def _broadcast(self, channel_id: str) -> None:
        for viewer_id, listener in list(self._watchers.get(channel_id, {}).values()):
            await self._notify(channel_id, viewer_id, listener)

    async def _notify(
        self, channel_id: str, viewer_id: str, listener: TypingListener
    ) -> None:
        try:
            await listener(self.typing_users(channel_id, viewer_id))
        except Exception as e:
            self._logger.error(
                "Typing listener failed", channel_id=channel_id, error=str(e)
            )
