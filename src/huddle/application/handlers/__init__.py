"""Change handler module."""

from typing import Protocol, runtime_checkable

from huddle.domain.entities.change import DataChange, RealtimeEvent


@runtime_checkable
class ChangeHandler(Protocol):
    """Protocol for handlers that turn row changes into realtime events."""

    async def handle(self, change: DataChange, conversation: str) -> list[RealtimeEvent]:
        """Build the events listeners of ``conversation`` should receive.

        Args:
            change: The row change.
            conversation: Routing key of the subscription that received it.

        Returns:
            Events to deliver, possibly none.
        """
        ...
