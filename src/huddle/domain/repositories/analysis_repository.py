"""Repository protocols for analyses and personas."""

from typing import Protocol

from huddle.domain.entities.analysis import MessageAnalysis
from huddle.domain.entities.persona import Persona


class AnalysisRepository(Protocol):
    """Cache of computed message analyses."""

    async def get(self, message_id: str) -> MessageAnalysis | None:
        """Get the stored analysis for a message, if any."""
        ...

    async def save(self, analysis: MessageAnalysis) -> None:
        """Store an analysis, replacing any previous one for the message."""
        ...


class PersonaRepository(Protocol):
    """Persistence of generated personas."""

    async def get_by_user(self, user_id: str) -> Persona | None:
        """Get a user's persona, if one was generated."""
        ...

    async def save(self, persona: Persona) -> Persona:
        """Create or replace the persona of ``persona.user_id``."""
        ...
