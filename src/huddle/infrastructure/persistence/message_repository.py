"""SQL implementations of MessageRepository and MembershipRepository."""

from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlmodel import select

from huddle.domain.entities.message import (
    Channel,
    ChannelMember,
    ChatMessage,
    DirectMessageMember,
    DirectMessageThread,
    MessageView,
    User,
    utc_now,
)
from huddle.domain.entities.reaction import Reaction
from huddle.infrastructure.persistence.database import Database


def _view_statement() -> Any:
    return (
        select(ChatMessage, User.username, Channel.name)
        .join(User, User.id == ChatMessage.sender_id, isouter=True)  # type: ignore[arg-type]
        .join(Channel, Channel.id == ChatMessage.channel_id, isouter=True)  # type: ignore[arg-type]
    )


def _to_view(row: Any) -> MessageView:
    message, username, channel_name = row
    return MessageView(
        id=message.id,
        content=message.content,
        sender_id=message.sender_id,
        sender=username or "system",
        channel_id=message.channel_id,
        dm_id=message.dm_id,
        parent_id=message.parent_id,
        conversation_name=channel_name or "direct_message",
        is_edited=message.is_edited,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


class SqlMessageRepository:
    """SQLModel-backed message store."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def save(self, message: ChatMessage) -> ChatMessage:
        async with self._database.get_session() as session:
            session.add(message)
        return message

    async def get(self, message_id: str) -> ChatMessage | None:
        async with self._database.get_session() as session:
            return await session.get(ChatMessage, message_id)

    async def get_view(self, message_id: str) -> MessageView | None:
        async with self._database.get_session() as session:
            result = await session.execute(
                _view_statement().where(ChatMessage.id == message_id)
            )
            row = result.first()
            return _to_view(row) if row is not None else None

    async def get_preceding(self, message: MessageView, limit: int) -> list[MessageView]:
        """Get up to ``limit`` earlier messages of the same conversation, oldest first."""
        if limit <= 0:
            return []

        statement = _view_statement().where(ChatMessage.created_at < message.created_at)
        if message.channel_id is not None:
            statement = statement.where(ChatMessage.channel_id == message.channel_id)
        else:
            statement = statement.where(ChatMessage.dm_id == message.dm_id)
        statement = statement.order_by(
            ChatMessage.created_at.desc()  # type: ignore[attr-defined]
        ).limit(limit)

        async with self._database.get_session() as session:
            result = await session.execute(statement)
            views = [_to_view(row) for row in result.all()]
        views.reverse()
        return views

    async def list_all(self) -> list[MessageView]:
        async with self._database.get_session() as session:
            result = await session.execute(
                _view_statement().order_by(ChatMessage.created_at.asc())  # type: ignore[attr-defined]
            )
            return [_to_view(row) for row in result.all()]

    async def list_since(self, since: datetime) -> list[MessageView]:
        async with self._database.get_session() as session:
            result = await session.execute(
                _view_statement()
                .where(ChatMessage.created_at > since)
                .order_by(ChatMessage.created_at.asc())  # type: ignore[attr-defined]
            )
            return [_to_view(row) for row in result.all()]

    async def list_by_sender(self, user_id: str, limit: int) -> list[MessageView]:
        async with self._database.get_session() as session:
            result = await session.execute(
                _view_statement()
                .where(ChatMessage.sender_id == user_id)
                .order_by(ChatMessage.created_at.desc())  # type: ignore[attr-defined]
                .limit(limit)
            )
            return [_to_view(row) for row in result.all()]

    async def update_content(self, message_id: str, content: str) -> ChatMessage | None:
        async with self._database.get_session() as session:
            message = await session.get(ChatMessage, message_id)
            if message is None:
                return None
            message.content = content
            message.is_edited = True
            message.updated_at = utc_now()
            session.add(message)
            return message

    async def delete(self, message_id: str) -> ChatMessage | None:
        async with self._database.get_session() as session:
            message = await session.get(ChatMessage, message_id)
            if message is None:
                return None
            await session.execute(
                delete(Reaction).where(Reaction.message_id == message_id)  # type: ignore[arg-type]
            )
            await session.delete(message)
            return message


class SqlMembershipRepository:
    """SQLModel-backed users, channels and direct-message threads."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def get_user(self, user_id: str) -> User | None:
        async with self._database.get_session() as session:
            return await session.get(User, user_id)

    async def is_channel_member(self, channel_id: str, user_id: str) -> bool:
        async with self._database.get_session() as session:
            return await session.get(ChannelMember, (channel_id, user_id)) is not None

    async def is_dm_member(self, dm_id: str, user_id: str) -> bool:
        async with self._database.get_session() as session:
            return await session.get(DirectMessageMember, (dm_id, user_id)) is not None

    async def list_conversation_keys(self, user_id: str) -> list[str]:
        async with self._database.get_session() as session:
            channels = await session.execute(
                select(ChannelMember.channel_id).where(ChannelMember.user_id == user_id)
            )
            dms = await session.execute(
                select(DirectMessageMember.dm_id).where(DirectMessageMember.user_id == user_id)
            )
            return [f"channel:{channel_id}" for channel_id in channels.scalars()] + [
                f"dm:{dm_id}" for dm_id in dms.scalars()
            ]

    async def create_user(self, username: str) -> User:
        user = User(username=username)
        async with self._database.get_session() as session:
            session.add(user)
        return user

    async def create_channel(self, name: str, member_ids: list[str]) -> Channel:
        channel = Channel(name=name)
        async with self._database.get_session() as session:
            session.add(channel)
            await session.flush()
            for user_id in member_ids:
                session.add(ChannelMember(channel_id=channel.id, user_id=user_id))
        return channel

    async def create_direct_message(self, member_ids: list[str]) -> DirectMessageThread:
        thread = DirectMessageThread()
        async with self._database.get_session() as session:
            session.add(thread)
            await session.flush()
            for user_id in member_ids:
                session.add(DirectMessageMember(dm_id=thread.id, user_id=user_id))
        return thread
