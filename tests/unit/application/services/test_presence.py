"""Tests for TypingPresence."""

from typing import Any

import structlog

from huddle.application.services.presence import TypingPresence


class Recorder:
    """Typing listener that keeps every pushed list."""

    def __init__(self) -> None:
        self.updates: list[list[dict[str, Any]]] = []

    async def __call__(self, users: list[dict[str, Any]]) -> None:
        self.updates.append(users)

    @property
    def last(self) -> list[dict[str, Any]]:
        return self.updates[-1]


def _presence() -> TypingPresence:
    return TypingPresence(logger=structlog.get_logger())


class TestTypingPresence:
    """Tests for join, track and untrack."""

    async def test_join_pushes_current_list(self) -> None:
        presence = _presence()
        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=True)
        recorder = Recorder()

        await presence.join("c1", "alice", recorder)

        assert recorder.updates == [[{"user_id": "bob", "username": "bob"}]]

    async def test_viewer_excluded_from_own_list(self) -> None:
        presence = _presence()
        alice, bob = Recorder(), Recorder()
        await presence.join("c1", "alice", alice)
        await presence.join("c1", "bob", bob)

        await presence.track("c1", "conn-alice", "alice", "alice", is_typing=True)

        assert alice.last == []
        assert bob.last == [{"user_id": "alice", "username": "alice"}]

    async def test_stop_typing_clears_entry(self) -> None:
        presence = _presence()
        recorder = Recorder()
        await presence.join("c1", "alice", recorder)
        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=True)

        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=False)

        assert recorder.last == []

    async def test_user_with_two_connections_listed_once(self) -> None:
        presence = _presence()
        await presence.track("c1", "conn-bob-1", "bob", "bob", is_typing=True)
        await presence.track("c1", "conn-bob-2", "bob", "bob", is_typing=True)

        assert presence.typing_users("c1", "alice") == [{"user_id": "bob", "username": "bob"}]

        await presence.untrack("c1", "conn-bob-1")
        assert presence.typing_users("c1", "alice") == [{"user_id": "bob", "username": "bob"}]

    async def test_channels_are_independent(self) -> None:
        presence = _presence()
        other = Recorder()
        await presence.join("c2", "alice", other)

        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=True)

        assert other.updates == [[]]
        assert presence.typing_users("c2", "alice") == []

    async def test_untrack_all_on_disconnect(self) -> None:
        presence = _presence()
        first, second = Recorder(), Recorder()
        await presence.join("c1", "alice", first)
        await presence.join("c2", "alice", second)
        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=True)
        await presence.track("c2", "conn-bob", "bob", "bob", is_typing=True)

        await presence.untrack_all("conn-bob")

        assert first.last == []
        assert second.last == []

    async def test_leave_stops_updates(self) -> None:
        presence = _presence()
        recorder = Recorder()
        handle = await presence.join("c1", "alice", recorder)

        await handle.close()
        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=True)

        assert recorder.updates == [[]]

    async def test_failing_listener_does_not_block_others(self) -> None:
        presence = _presence()
        recorder = Recorder()

        async def broken(users: list[dict[str, Any]]) -> None:
            raise RuntimeError("socket closed")

        await presence.join("c1", "carol", broken)
        await presence.join("c1", "alice", recorder)

        await presence.track("c1", "conn-bob", "bob", "bob", is_typing=True)

        assert recorder.last == [{"user_id": "bob", "username": "bob"}]
