"""Reaction entities."""

from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from huddle.domain.entities.message import new_id, utc_now


class Reaction(SQLModel, table=True):
    """A single (message, user, emoji) reaction."""

    __tablename__ = "message_reactions"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", "emoji", name="uq_reaction"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    message_id: str = Field(index=True)
    user_id: str
    emoji: str
    created_at: datetime = Field(default_factory=utc_now)


class ReactionSummary(BaseModel):
    """Aggregated reactions for one emoji on one message."""

    emoji: str
    count: int
    users: list[str]
