"""Change handler implementations."""

from huddle.application.handlers import ChangeHandler
from huddle.domain.entities.change import (
    ChangeOperation,
    ChangeTable,
    DataChange,
    RealtimeEvent,
    RealtimeEventType,
)
from huddle.domain.repositories import ReactionRepository


class MessageChangeHandler:
    """Handler for message row changes."""

    EVENT_TYPES: dict[ChangeOperation, RealtimeEventType] = {
        ChangeOperation.INSERT: RealtimeEventType.NEW_MESSAGE,
        ChangeOperation.UPDATE: RealtimeEventType.MESSAGE_UPDATED,
        ChangeOperation.DELETE: RealtimeEventType.MESSAGE_DELETED,
    }

    async def handle(self, change: DataChange, conversation: str) -> list[RealtimeEvent]:
        event_type = self.EVENT_TYPES[change.operation]
        if event_type == RealtimeEventType.MESSAGE_DELETED:
            payload = {"messageId": change.row_value("id")}
        else:
            payload = {"message": change.new}
        return [RealtimeEvent(type=event_type, conversation=conversation, payload=payload)]


class ReactionChangeHandler:
    """Handler for reaction row changes.

    Any change re-fetches the message's full aggregate rather than applying
    a delta.
    """

    def __init__(self, reactions: ReactionRepository) -> None:
        self._reactions = reactions

    async def handle(self, change: DataChange, conversation: str) -> list[RealtimeEvent]:
        message_id = change.row_value("message_id")
        if message_id is None:
            return []

        summaries = await self._reactions.list_for_message(message_id)
        return [
            RealtimeEvent(
                type=RealtimeEventType.REACTIONS_UPDATED,
                conversation=conversation,
                payload={
                    "messageId": message_id,
                    "reactions": [summary.model_dump() for summary in summaries],
                },
            )
        ]


class ChangeHandlerRegistry:
    """Registry for change handlers."""

    def __init__(self) -> None:
        """Initialize the registry."""
        self._handlers: dict[ChangeTable, ChangeHandler] = {}

    def register(self, table: ChangeTable, handler: ChangeHandler) -> None:
        """Register a handler for a table.

        Args:
            table: The table whose changes to handle.
            handler: The handler to register.
        """
        self._handlers[table] = handler

    def get_handler(self, table: ChangeTable) -> ChangeHandler | None:
        """Get handler for a table.

        Args:
            table: The table.

        Returns:
            The handler if registered, None otherwise.
        """
        return self._handlers.get(table)


def create_change_handler_registry(reactions: ReactionRepository) -> ChangeHandlerRegistry:
    """Create a registry with the message and reaction handlers."""
    registry = ChangeHandlerRegistry()
    registry.register(ChangeTable.MESSAGES, MessageChangeHandler())
    registry.register(ChangeTable.REACTIONS, ReactionChangeHandler(reactions))
    return registry
