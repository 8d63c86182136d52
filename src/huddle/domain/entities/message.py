"""Chat records: users, conversations, memberships and messages."""

from datetime import datetime, timezone
from typing import Any

import ulid
from pydantic import BaseModel
from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel


def new_id() -> str:
    """Return a new ULID string identifier."""
    return str(ulid.new())


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A chat participant."""

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    username: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utc_now)


class Channel(SQLModel, table=True):
    """A named, multi-member conversation."""

    __tablename__ = "channels"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str = Field(index=True)
    created_at: datetime = Field(default_factory=utc_now)


class ChannelMember(SQLModel, table=True):
    """Membership of a user in a channel."""

    __tablename__ = "channel_members"

    channel_id: str = Field(foreign_key="channels.id", primary_key=True)
    user_id: str = Field(foreign_key="users.id", primary_key=True)


class DirectMessageThread(SQLModel, table=True):
    """A private conversation between a fixed set of users."""

    __tablename__ = "direct_message_threads"

    id: str = Field(default_factory=new_id, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)


class DirectMessageMember(SQLModel, table=True):
    """Membership of a user in a direct-message thread."""

    __tablename__ = "direct_message_members"

    dm_id: str = Field(foreign_key="direct_message_threads.id", primary_key=True)
    user_id: str = Field(foreign_key="users.id", primary_key=True)


class ChatMessage(SQLModel, table=True):
    """A message posted to exactly one channel or direct-message thread.

    Attributes:
        id: ULID.
        content: Message text.
        sender_id: Author's user ID.
        channel_id: Channel the message belongs to, if any.
        dm_id: Direct-message thread the message belongs to, if any.
        parent_id: Parent message ID for thread replies.
        file_id: Attached file reference.
        is_edited: Whether the content was changed after posting.
        created_at: Post time.
        updated_at: Last modification time.
    """

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "(channel_id IS NULL) != (dm_id IS NULL)",
            name="ck_messages_one_conversation",
        ),
        Index("idx_messages_channel_created", "channel_id", "created_at"),
        Index("idx_messages_dm_created", "dm_id", "created_at"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    content: str
    sender_id: str = Field(foreign_key="users.id", index=True)
    channel_id: str | None = Field(default=None, foreign_key="channels.id")
    dm_id: str | None = Field(default=None, foreign_key="direct_message_threads.id")
    parent_id: str | None = Field(default=None, index=True)
    file_id: str | None = None
    is_edited: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def conversation_type(self) -> str:
        """Return ``"channel"`` or ``"dm"``."""
        return "channel" if self.channel_id is not None else "dm"

    @property
    def conversation_id(self) -> str:
        """Return the channel or DM thread ID."""
        return self.channel_id if self.channel_id is not None else self.dm_id  # type: ignore[return-value]

    @property
    def conversation_key(self) -> str:
        """Return the routing key, e.g. ``channel:<id>`` or ``dm:<id>``."""
        return f"{self.conversation_type}:{self.conversation_id}"


class MessageView(BaseModel):
    """A message joined with its sender and conversation names."""

    id: str
    content: str
    sender_id: str
    sender: str
    channel_id: str | None = None
    dm_id: str | None = None
    parent_id: str | None = None
    conversation_name: str
    is_edited: bool = False
    created_at: datetime
    updated_at: datetime

    @property
    def conversation_type(self) -> str:
        return "channel" if self.channel_id is not None else "dm"

    @property
    def conversation_key(self) -> str:
        conversation_id = self.channel_id if self.channel_id is not None else self.dm_id
        return f"{self.conversation_type}:{conversation_id}"

    @property
    def topics(self) -> list[str]:
        """Routing keys a change to this message is published on."""
        topics = [self.conversation_key]
        if self.parent_id is not None:
            topics.append(f"thread:{self.parent_id}")
        return topics

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        return self.model_dump(mode="json")
