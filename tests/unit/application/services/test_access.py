"""Tests for ConversationAccess."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from huddle.application.services.access import (
    ConversationAccess,
    parse_conversation_key,
)
from huddle.domain.entities.message import MessageView
from huddle.domain.errors import AuthorizationError, InvalidRequestError, NotFoundError

NOW = datetime(2024, 3, 19, 12, 0, tzinfo=timezone.utc)


def _view(channel_id: str | None = "c1", dm_id: str | None = None) -> MessageView:
    return MessageView(
        id="m1",
        content="hello",
        sender_id="u1",
        sender="alice",
        channel_id=channel_id,
        dm_id=dm_id,
        conversation_name="general" if channel_id else "direct_message",
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def membership() -> AsyncMock:
    membership = AsyncMock()
    membership.is_channel_member.return_value = True
    membership.is_dm_member.return_value = True
    return membership


@pytest.fixture
def messages() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def access(membership: AsyncMock, messages: AsyncMock) -> ConversationAccess:
    return ConversationAccess(membership=membership, messages=messages)


class TestParseConversationKey:
    """Tests for parse_conversation_key()."""

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("channel:c1", ("channel", "c1")),
            ("dm:d1", ("dm", "d1")),
            ("thread:m1", ("thread", "m1")),
        ],
    )
    def test_valid_keys(self, key: str, expected: tuple[str, str]) -> None:
        assert parse_conversation_key(key) == expected

    @pytest.mark.parametrize("key", ["", "channel", "channel:", "room:r1", "c1"])
    def test_invalid_keys(self, key: str) -> None:
        with pytest.raises(InvalidRequestError):
            parse_conversation_key(key)


class TestCanView:
    """Tests for message visibility."""

    async def test_channel_member_can_view(
        self, access: ConversationAccess, membership: AsyncMock
    ) -> None:
        assert await access.can_view("u2", _view()) is True
        membership.is_channel_member.assert_awaited_once_with("c1", "u2")

    async def test_non_member_denied(
        self, access: ConversationAccess, membership: AsyncMock
    ) -> None:
        membership.is_channel_member.return_value = False

        with pytest.raises(AuthorizationError) as exc_info:
            await access.ensure_can_view("u2", _view())

        assert str(exc_info.value) == "Not authorized to access this message"

    async def test_dm_uses_dm_membership(
        self, access: ConversationAccess, membership: AsyncMock
    ) -> None:
        assert await access.can_view("u2", _view(channel_id=None, dm_id="d1")) is True
        membership.is_dm_member.assert_awaited_once_with("d1", "u2")
        membership.is_channel_member.assert_not_awaited()

    async def test_message_without_conversation_denied(
        self, access: ConversationAccess
    ) -> None:
        assert await access.can_view("u2", _view(channel_id=None)) is False

    async def test_visible_conversations_come_from_membership(
        self, access: ConversationAccess, membership: AsyncMock
    ) -> None:
        membership.list_conversation_keys.return_value = ["channel:c1", "dm:d1"]

        assert await access.visible_conversations("u2") == ["channel:c1", "dm:d1"]
        membership.list_conversation_keys.assert_awaited_once_with("u2")


class TestEnsureCanSubscribe:
    """Tests for subscription access checks."""

    async def test_channel_key(
        self, access: ConversationAccess, membership: AsyncMock
    ) -> None:
        membership.is_channel_member.return_value = False

        with pytest.raises(AuthorizationError):
            await access.ensure_can_subscribe("u2", "channel:c1")

    async def test_dm_key(self, access: ConversationAccess, membership: AsyncMock) -> None:
        await access.ensure_can_subscribe("u2", "dm:d1")

        membership.is_dm_member.assert_awaited_once_with("d1", "u2")

    async def test_thread_inherits_parent_access(
        self,
        access: ConversationAccess,
        membership: AsyncMock,
        messages: AsyncMock,
    ) -> None:
        messages.get_view.return_value = _view()
        membership.is_channel_member.return_value = False

        with pytest.raises(AuthorizationError):
            await access.ensure_can_subscribe("u2", "thread:m1")

        messages.get_view.assert_awaited_once_with("m1")

    async def test_thread_with_missing_parent(
        self, access: ConversationAccess, messages: AsyncMock
    ) -> None:
        messages.get_view.return_value = None

        with pytest.raises(NotFoundError):
            await access.ensure_can_subscribe("u2", "thread:missing")

    async def test_malformed_key(self, access: ConversationAccess) -> None:
        with pytest.raises(InvalidRequestError):
            await access.ensure_can_subscribe("u2", "everything")
