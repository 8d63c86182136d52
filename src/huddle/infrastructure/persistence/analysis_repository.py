"""SQL implementations of AnalysisRepository and PersonaRepository."""

from sqlmodel import select

from huddle.domain.entities.analysis import MessageAnalysis
from huddle.domain.entities.message import utc_now
from huddle.domain.entities.persona import Persona
from huddle.infrastructure.persistence.database import Database


class SqlAnalysisRepository:
    """Analysis cache stored in the relational database."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def get(self, message_id: str) -> MessageAnalysis | None:
        async with self._database.get_session() as session:
            return await session.get(MessageAnalysis, message_id)

    async def save(self, analysis: MessageAnalysis) -> None:
        """Store an analysis; the last write for a message ID wins."""
        async with self._database.get_session() as session:
            await session.merge(analysis)


class SqlPersonaRepository:
    """Persona store keyed by user ID."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def get_by_user(self, user_id: str) -> Persona | None:
        async with self._database.get_session() as session:
            result = await session.execute(
                select(Persona).where(Persona.user_id == user_id)
            )
            return result.scalars().first()

    async def save(self, persona: Persona) -> Persona:
        async with self._database.get_session() as session:
            result = await session.execute(
                select(Persona).where(Persona.user_id == persona.user_id)
            )
            existing = result.scalars().first()
            if existing is None:
                session.add(persona)
                return persona

            # Keep the original ID and creation time
            existing.persona_name = persona.persona_name
            existing.persona_description = persona.persona_description
            existing.updated_at = utc_now()
            session.add(existing)
            return existing
