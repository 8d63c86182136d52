"""Persona entity for the chat-with-a-persona simulator."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from huddle.domain.entities.message import new_id, utc_now


class Persona(SQLModel, table=True):
    """A communication-style profile derived from a user's messages."""

    __tablename__ = "personas"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="users.id", unique=True)
    persona_name: str
    persona_description: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
