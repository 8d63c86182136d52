"""Tests for change handlers and the handler registry."""

from unittest.mock import AsyncMock

from huddle.application.handlers import ChangeHandler
from huddle.application.handlers.change_handlers import (
    ChangeHandlerRegistry,
    MessageChangeHandler,
    ReactionChangeHandler,
    create_change_handler_registry,
)
from huddle.domain.entities.change import (
    ChangeOperation,
    ChangeTable,
    DataChange,
    RealtimeEventType,
)
from huddle.domain.entities.reaction import ReactionSummary

MESSAGE_ROW = {"id": "m1", "content": "Hello", "channel_id": "c1"}


def _message_change(operation: ChangeOperation) -> DataChange:
    return DataChange(
        topics=["channel:c1"],
        table=ChangeTable.MESSAGES,
        operation=operation,
        new=None if operation == ChangeOperation.DELETE else MESSAGE_ROW,
        old=None if operation == ChangeOperation.INSERT else MESSAGE_ROW,
    )


class TestMessageChangeHandler:
    """Tests for MessageChangeHandler."""

    async def test_insert_becomes_new_message(self) -> None:
        (event,) = await MessageChangeHandler().handle(
            _message_change(ChangeOperation.INSERT), "channel:c1"
        )

        assert event.type == RealtimeEventType.NEW_MESSAGE
        assert event.to_wire() == {
            "type": "new_message",
            "conversation": "channel:c1",
            "message": MESSAGE_ROW,
        }

    async def test_update_becomes_message_updated(self) -> None:
        (event,) = await MessageChangeHandler().handle(
            _message_change(ChangeOperation.UPDATE), "channel:c1"
        )

        assert event.type == RealtimeEventType.MESSAGE_UPDATED
        assert event.payload == {"message": MESSAGE_ROW}

    async def test_delete_carries_message_id_only(self) -> None:
        (event,) = await MessageChangeHandler().handle(
            _message_change(ChangeOperation.DELETE), "thread:m0"
        )

        assert event.type == RealtimeEventType.MESSAGE_DELETED
        assert event.conversation == "thread:m0"
        assert event.payload == {"messageId": "m1"}


class TestReactionChangeHandler:
    """Tests for ReactionChangeHandler."""

    async def test_refetches_aggregate(self) -> None:
        reactions = AsyncMock()
        reactions.list_for_message.return_value = [
            ReactionSummary(emoji="👍", count=2, users=["u1", "u2"])
        ]
        change = DataChange(
            topics=["channel:c1"],
            table=ChangeTable.REACTIONS,
            operation=ChangeOperation.DELETE,
            old={"message_id": "m1", "user_id": "u3", "emoji": "👍"},
        )

        (event,) = await ReactionChangeHandler(reactions).handle(change, "channel:c1")

        reactions.list_for_message.assert_awaited_once_with("m1")
        assert event.type == RealtimeEventType.REACTIONS_UPDATED
        assert event.payload == {
            "messageId": "m1",
            "reactions": [{"emoji": "👍", "count": 2, "users": ["u1", "u2"]}],
        }

    async def test_change_without_message_id_ignored(self) -> None:
        reactions = AsyncMock()
        change = DataChange(
            topics=["channel:c1"],
            table=ChangeTable.REACTIONS,
            operation=ChangeOperation.INSERT,
            new={"emoji": "👍"},
        )

        assert await ReactionChangeHandler(reactions).handle(change, "channel:c1") == []
        reactions.list_for_message.assert_not_awaited()


class TestChangeHandlerRegistry:
    """Tests for ChangeHandlerRegistry."""

    def test_register_and_get_handler(self) -> None:
        registry = ChangeHandlerRegistry()
        handler = MessageChangeHandler()

        registry.register(ChangeTable.MESSAGES, handler)

        assert registry.get_handler(ChangeTable.MESSAGES) is handler

    def test_get_handler_returns_none_for_unregistered(self) -> None:
        assert ChangeHandlerRegistry().get_handler(ChangeTable.REACTIONS) is None

    def test_default_registry_covers_both_tables(self) -> None:
        registry = create_change_handler_registry(AsyncMock())

        assert isinstance(registry.get_handler(ChangeTable.MESSAGES), MessageChangeHandler)
        assert isinstance(registry.get_handler(ChangeTable.REACTIONS), ReactionChangeHandler)

    def test_handlers_satisfy_protocol(self) -> None:
        assert isinstance(MessageChangeHandler(), ChangeHandler)
        assert isinstance(ReactionChangeHandler(AsyncMock()), ChangeHandler)
