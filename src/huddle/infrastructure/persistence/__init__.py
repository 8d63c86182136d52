"""Persistence infrastructure."""

from huddle.infrastructure.persistence.analysis_repository import (
    SqlAnalysisRepository,
    SqlPersonaRepository,
)
from huddle.infrastructure.persistence.database import Database
from huddle.infrastructure.persistence.message_repository import (
    SqlMembershipRepository,
    SqlMessageRepository,
)
from huddle.infrastructure.persistence.reaction_repository import SqlReactionRepository

__all__ = [
    "Database",
    "SqlAnalysisRepository",
    "SqlMembershipRepository",
    "SqlMessageRepository",
    "SqlPersonaRepository",
    "SqlReactionRepository",
]
