"""Conversation access checks."""

from huddle.domain.entities.message import MessageView
from huddle.domain.errors import AuthorizationError, InvalidRequestError, NotFoundError
from huddle.domain.repositories import MembershipRepository, MessageRepository

CONVERSATION_KINDS = ("channel", "dm", "thread")


def parse_conversation_key(key: str) -> tuple[str, str]:
    """Split ``channel:<id>``, ``dm:<id>`` or ``thread:<id>`` into its parts.

    Raises:
        InvalidRequestError: If the key is malformed.
    """
    kind, _, conversation_id = key.partition(":")
    if kind not in CONVERSATION_KINDS or not conversation_id:
        raise InvalidRequestError(f"Invalid conversation: {key}")
    return kind, conversation_id


class ConversationAccess:
    """Answers whether a user may see a conversation.

    Channel messages require channel membership, direct messages require
    membership of the thread, and a reply thread inherits the rule of its
    parent message. Every check fails closed.
    """

    def __init__(
        self,
        membership: MembershipRepository,
        messages: MessageRepository,
    ) -> None:
        self._membership = membership
        self._messages = messages

    async def can_view(self, user_id: str, message: MessageView) -> bool:
        if message.channel_id is not None:
            return await self._membership.is_channel_member(message.channel_id, user_id)
        if message.dm_id is not None:
            return await self._membership.is_dm_member(message.dm_id, user_id)
        return False

    async def ensure_can_view(self, user_id: str, message: MessageView) -> None:
        """Raise AuthorizationError unless ``user_id`` may see ``message``."""
        if not await self.can_view(user_id, message):
            raise AuthorizationError("Not authorized to access this message")

    async def visible_conversations(self, user_id: str) -> list[str]:
        """Return the channel and DM keys whose messages ``user_id`` may see."""
        return await self._membership.list_conversation_keys(user_id)

    async def ensure_channel_member(self, user_id: str, channel_id: str) -> None:
        if not await self._membership.is_channel_member(channel_id, user_id):
            raise AuthorizationError("Not a member of this channel")

    async def ensure_dm_member(self, user_id: str, dm_id: str) -> None:
        if not await self._membership.is_dm_member(dm_id, user_id):
            raise AuthorizationError("Not a member of this conversation")

    async def ensure_can_subscribe(self, user_id: str, key: str) -> None:
        """Check access to the conversation named by a routing key.

        Raises:
            InvalidRequestError: If the key is malformed.
            NotFoundError: If a thread's parent message does not exist.
            AuthorizationError: If the user may not see the conversation.
        """
        kind, conversation_id = parse_conversation_key(key)
        if kind == "channel":
            await self.ensure_channel_member(user_id, conversation_id)
        elif kind == "dm":
            await self.ensure_dm_member(user_id, conversation_id)
        else:
            parent = await self._messages.get_view(conversation_id)
            if parent is None:
                raise NotFoundError(f"Message not found: {conversation_id}")
            await self.ensure_can_view(user_id, parent)
