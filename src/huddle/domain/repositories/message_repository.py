"""Repository protocols for messages and conversation membership."""

from datetime import datetime
from typing import Protocol

from huddle.domain.entities.message import ChatMessage, MessageView, User


class MessageRepository(Protocol):
    """Persistence of chat messages.

    Read methods return MessageView so callers get sender and conversation
    names without a second lookup.
    """

    async def save(self, message: ChatMessage) -> ChatMessage:
        """Insert a new message and return it."""
        ...

    async def get_view(self, message_id: str) -> MessageView | None:
        """Get a message with resolved names.

        Args:
            message_id: The message ID.

        Returns:
            The message if found, None otherwise.
        """
        ...

    async def get_preceding(self, message: MessageView, limit: int) -> list[MessageView]:
        """Get messages posted before ``message`` in the same conversation.

        Args:
            message: The reference message.
            limit: Maximum number of messages to return.

        Returns:
            Up to ``limit`` messages, oldest first.
        """
        ...

    async def list_all(self) -> list[MessageView]:
        """Get every message, oldest first."""
        ...

    async def list_since(self, since: datetime) -> list[MessageView]:
        """Get messages created strictly after ``since``, oldest first."""
        ...

    async def list_by_sender(self, user_id: str, limit: int) -> list[MessageView]:
        """Get a user's most recent messages, newest first."""
        ...

    async def update_content(self, message_id: str, content: str) -> ChatMessage | None:
        """Replace the content and mark the message edited.

        Returns:
            The updated message, or None if it does not exist.
        """
        ...

    async def delete(self, message_id: str) -> ChatMessage | None:
        """Delete a message and its reactions.

        Returns:
            The deleted message, or None if it did not exist.
        """
        ...


class MembershipRepository(Protocol):
    """Read access to users and conversation membership."""

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        ...

    async def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        """Return True if the user belongs to the channel."""
        ...

    async def is_dm_member(self, dm_id: str, user_id: str) -> bool:
        """Return True if the user belongs to the direct-message thread."""
        ...

    async def list_conversation_keys(self, user_id: str) -> list[str]:
        """Return ``channel:<id>`` and ``dm:<id>`` keys the user belongs to."""
        ...
