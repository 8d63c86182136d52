"""Construction of the shared infrastructure components."""

from dataclasses import dataclass

from huddle.application.services.access import ConversationAccess
from huddle.application.services.chunker import TextChunker
from huddle.config.models import AppConfig
from huddle.infrastructure.embeddings import EmbeddingGenerator, create_embedding_provider
from huddle.infrastructure.llm import AgentLanguageModel
from huddle.infrastructure.logging import get_logger
from huddle.infrastructure.persistence import (
    Database,
    SqlAnalysisRepository,
    SqlMembershipRepository,
    SqlMessageRepository,
    SqlPersonaRepository,
    SqlReactionRepository,
)
from huddle.infrastructure.vector_index import LanceVectorIndex


@dataclass
class Components:
    """Stores, providers and helpers shared by the server and the index job."""

    database: Database
    messages: SqlMessageRepository
    membership: SqlMembershipRepository
    reactions: SqlReactionRepository
    analyses: SqlAnalysisRepository
    personas: SqlPersonaRepository
    access: ConversationAccess
    chunker: TextChunker
    embeddings: EmbeddingGenerator
    index: LanceVectorIndex
    llm: AgentLanguageModel


def build_components(config: AppConfig) -> Components:
    """Create every component from configuration.

    Nothing connects yet; call ``database.initialize()`` before use.
    """
    database = Database(config.database.url)
    messages = SqlMessageRepository(database)
    membership = SqlMembershipRepository(database)
    return Components(
        database=database,
        messages=messages,
        membership=membership,
        reactions=SqlReactionRepository(database),
        analyses=SqlAnalysisRepository(database),
        personas=SqlPersonaRepository(database),
        access=ConversationAccess(membership, messages),
        chunker=TextChunker(config.chunking),
        embeddings=EmbeddingGenerator(
            create_embedding_provider(config.embedding),
            config.embedding,
            logger=get_logger("embeddings"),
        ),
        index=LanceVectorIndex(
            config.vector_index,
            dimension=config.embedding.dimension,
            logger=get_logger("vector_index"),
        ),
        llm=AgentLanguageModel(config.llm, logger=get_logger("llm")),
    )
