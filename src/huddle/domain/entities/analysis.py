"""Message analysis entities."""

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import Column
from sqlalchemy.types import JSON
from sqlmodel import Field, SQLModel

from huddle.domain.entities.message import utc_now


class AnalysisFields(BaseModel):
    """The model-generated part of an analysis."""

    summary: str = ""
    key_points: list[str] = PydanticField(default_factory=list)
    tone: str = ""
    action_items: list[str] = PydanticField(default_factory=list)
    patterns: list[str] = PydanticField(default_factory=list)


class MessageAnalysis(SQLModel, table=True):
    """Stored analysis of a message, one row per message ID.

    Attributes:
        message_id: Analyzed message.
        summary: One-paragraph summary.
        key_points: Main points raised.
        tone: Overall tone of the exchange.
        action_items: Follow-ups the conversation implies.
        patterns: Recurring themes across similar history.
        context_messages: Messages shown to the model, oldest first.
        similar_messages: Related historical chunks from the index.
        created_at: When the analysis was computed.
        created_by: User who requested it.
    """

    __tablename__ = "message_analyses"

    message_id: str = Field(primary_key=True)
    summary: str = ""
    key_points: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    tone: str = ""
    action_items: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    patterns: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    context_messages: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON)
    )
    similar_messages: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON)
    )
    created_at: datetime = Field(default_factory=utc_now)
    created_by: str

    def age(self, now: datetime) -> timedelta:
        """Return the time elapsed since creation.

        SQLite hands back naive datetimes, which are stored in UTC.
        """
        created_at = self.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return now - created_at

    def is_fresh(self, now: datetime, window: timedelta) -> bool:
        return self.age(now) < window

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class AnalysisEventType(str, Enum):
    """Event kinds emitted on the analysis stream."""

    STATUS = "status"
    RESULT = "result"
    ERROR = "error"


class AnalysisEvent(BaseModel):
    """One event on the analysis stream."""

    type: AnalysisEventType
    data: dict[str, Any]

    @classmethod
    def status(cls, message: str) -> "AnalysisEvent":
        return cls(type=AnalysisEventType.STATUS, data={"message": message})

    @classmethod
    def result(cls, analysis: MessageAnalysis) -> "AnalysisEvent":
        return cls(type=AnalysisEventType.RESULT, data={"analysis": analysis.to_payload()})

    @classmethod
    def error(cls, message: str, details: str = "") -> "AnalysisEvent":
        return cls(
            type=AnalysisEventType.ERROR,
            data={"error": message, "details": details},
        )

    def encode(self) -> bytes:
        """Frame the event as ``event:``/``data:`` lines and a blank line."""
        return f"event: {self.type.value}\ndata: {json.dumps(self.data)}\n\n".encode()
