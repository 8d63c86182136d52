"""Change notifications and realtime events."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import ulid
from pydantic import BaseModel, Field


class ChangeTable(str, Enum):
    """Tables whose changes are streamed."""

    MESSAGES = "messages"
    REACTIONS = "message_reactions"


class ChangeOperation(str, Enum):
    """Kind of row change."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class DataChange(BaseModel):
    """A row-level change published on the change stream.

    Attributes:
        id: ULID, unique per publication.
        topics: Routing keys the change is published on.
        table: Source table.
        operation: Insert, update or delete.
        new: Row after the change (absent for deletes).
        old: Row before the change (absent for inserts).
    """

    id: str = Field(default_factory=lambda: str(ulid.new()))
    topics: list[str]
    table: ChangeTable
    operation: ChangeOperation
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def row_value(self, key: str) -> Any:
        """Return ``key`` from the new row, falling back to the old one."""
        for row in (self.new, self.old):
            if row and row.get(key) is not None:
                return row[key]
        return None


class RealtimeEventType(str, Enum):
    """Events delivered to realtime listeners."""

    NEW_MESSAGE = "new_message"
    MESSAGE_UPDATED = "message_updated"
    MESSAGE_DELETED = "message_deleted"
    REACTIONS_UPDATED = "reactions_updated"
    TYPING = "typing"
    SUBSCRIPTION_FAILED = "subscription_failed"


class RealtimeEvent(BaseModel):
    """An event routed to the listeners of one conversation."""

    type: RealtimeEventType
    conversation: str
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        """Return the flat JSON shape sent to clients."""
        return {"type": self.type.value, "conversation": self.conversation, **self.payload}
