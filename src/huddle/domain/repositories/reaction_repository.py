"""ReactionRepository protocol."""

from typing import Protocol

from huddle.domain.entities.reaction import ReactionSummary


class ReactionRepository(Protocol):
    """Persistence of message reactions."""

    async def toggle(self, message_id: str, user_id: str, emoji: str) -> bool:
        """Add the reaction if absent, remove it if present.

        Returns:
            True if the reaction was added, False if it was removed.
        """
        ...

    async def list_for_message(self, message_id: str) -> list[ReactionSummary]:
        """Get the aggregated reactions of a message, sorted by emoji."""
        ...
