"""Message and reaction lifecycle with change notifications."""

from typing import Any

from structlog.stdlib import BoundLogger

from huddle.application.services.access import ConversationAccess
from huddle.domain.entities.change import ChangeOperation, ChangeTable, DataChange
from huddle.domain.entities.message import ChatMessage, MessageView
from huddle.domain.entities.reaction import ReactionSummary
from huddle.domain.errors import AuthorizationError, InvalidRequestError, NotFoundError
from huddle.domain.repositories import (
    MessageRepository,
    ReactionRepository,
    VectorIndex,
)
from huddle.infrastructure.realtime.change_stream import ChangePublisher


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(f"{field} is required")
    return value


class MessageService:
    """Posts, edits and deletes messages and toggles reactions.

    Every mutation is written to the store first and then published on the
    change stream, so subscribers never hear about rows that do not exist.
    """

    def __init__(
        self,
        messages: MessageRepository,
        reactions: ReactionRepository,
        access: ConversationAccess,
        index: VectorIndex,
        publisher: ChangePublisher,
        logger: BoundLogger,
    ) -> None:
        self._messages = messages
        self._reactions = reactions
        self._access = access
        self._index = index
        self._publisher = publisher
        self._logger = logger

    async def post_message(
        self,
        user_id: str,
        content: Any,
        channel_id: str | None = None,
        dm_id: str | None = None,
        parent_id: str | None = None,
        file_id: str | None = None,
    ) -> MessageView:
        """Post a message to exactly one channel or direct-message thread.

        Raises:
            InvalidRequestError: If content is empty, the conversation is
                ambiguous, or the parent belongs to another conversation.
            AuthorizationError: If the user is not a member of the conversation.
            NotFoundError: If the parent message does not exist.
        """
        content = _require_text(content, "Message content")
        if (channel_id is None) == (dm_id is None):
            raise InvalidRequestError("Exactly one of channel_id or dm_id is required")

        if channel_id is not None:
            await self._access.ensure_channel_member(user_id, channel_id)
        else:
            await self._access.ensure_dm_member(user_id, dm_id)  # type: ignore[arg-type]

        if parent_id is not None:
            parent = await self._messages.get_view(parent_id)
            if parent is None:
                raise NotFoundError(f"Message not found: {parent_id}")
            if parent.channel_id != channel_id or parent.dm_id != dm_id:
                raise InvalidRequestError("Reply must be in the parent's conversation")

        saved = await self._messages.save(
            ChatMessage(
                content=content,
                sender_id=user_id,
                channel_id=channel_id,
                dm_id=dm_id,
                parent_id=parent_id,
                file_id=file_id,
            )
        )
        view = await self._get_view(saved.id)
        await self._publish_message(ChangeOperation.INSERT, view, new=view)
        self._logger.info(
            "Message posted",
            message_id=view.id,
            conversation=view.conversation_key,
            thread=parent_id,
        )
        return view

    async def edit_message(self, user_id: str, message_id: str, content: Any) -> MessageView:
        """Replace a message's content; only its sender may do so."""
        content = _require_text(content, "Message content")
        before = await self._get_view(message_id)
        if before.sender_id != user_id:
            raise AuthorizationError("Only the sender can edit this message")

        await self._messages.update_content(message_id, content)
        after = await self._get_view(message_id)
        await self._publish_message(ChangeOperation.UPDATE, after, new=after, old=before)
        self._logger.info("Message edited", message_id=message_id)
        return after

    async def delete_message(self, user_id: str, message_id: str) -> None:
        """Delete a message, its reactions and its vectors; only its sender may do so."""
        view = await self._get_view(message_id)
        if view.sender_id != user_id:
            raise AuthorizationError("Only the sender can delete this message")

        await self._messages.delete(message_id)
        removed = await self._index.delete_by_message_id(message_id)
        await self._publish_message(ChangeOperation.DELETE, view, old=view)
        self._logger.info("Message deleted", message_id=message_id, vectors_removed=removed)

    async def toggle_reaction(
        self, user_id: str, message_id: str, emoji: Any
    ) -> list[ReactionSummary]:
        """Add or remove the user's ``emoji`` reaction.

        Returns:
            The message's aggregated reactions after the toggle.
        """
        emoji = _require_text(emoji, "Emoji")
        view = await self._get_view(message_id)
        await self._access.ensure_can_view(user_id, view)

        added = await self._reactions.toggle(message_id, user_id, emoji)
        row = {"message_id": message_id, "user_id": user_id, "emoji": emoji}
        await self._publisher.publish(
            DataChange(
                topics=view.topics,
                table=ChangeTable.REACTIONS,
                operation=ChangeOperation.INSERT if added else ChangeOperation.DELETE,
                new=row if added else None,
                old=None if added else row,
            )
        )
        self._logger.debug(
            "Reaction toggled", message_id=message_id, emoji=emoji, added=added
        )
        return await self._reactions.list_for_message(message_id)

    async def list_reactions(self, user_id: str, message_id: str) -> list[ReactionSummary]:
        view = await self._get_view(message_id)
        await self._access.ensure_can_view(user_id, view)
        return await self._reactions.list_for_message(message_id)

    async def _get_view(self, message_id: str) -> MessageView:
        view = await self._messages.get_view(message_id)
        if view is None:
            raise NotFoundError(f"Message not found: {message_id}")
        return view

    async def _publish_message(
        self,
        operation: ChangeOperation,
        view: MessageView,
        new: MessageView | None = None,
        old: MessageView | None = None,
    ) -> None:
        await self._publisher.publish(
            DataChange(
                topics=view.topics,
                table=ChangeTable.MESSAGES,
                operation=operation,
                new=new.to_payload() if new is not None else None,
                old=old.to_payload() if old is not None else None,
            )
        )
