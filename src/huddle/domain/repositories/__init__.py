"""Repository protocols."""

from huddle.domain.repositories.analysis_repository import (
    AnalysisRepository,
    PersonaRepository,
)
from huddle.domain.repositories.message_repository import (
    MembershipRepository,
    MessageRepository,
)
from huddle.domain.repositories.reaction_repository import ReactionRepository
from huddle.domain.repositories.vector_index import VectorIndex

__all__ = [
    "AnalysisRepository",
    "MembershipRepository",
    "MessageRepository",
    "PersonaRepository",
    "ReactionRepository",
    "VectorIndex",
]
