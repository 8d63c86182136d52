"""Embedding infrastructure."""

from huddle.infrastructure.embeddings.generator import EmbeddingGenerator
from huddle.infrastructure.embeddings.provider import (
    EmbeddingProvider,
    HashEmbeddingProvider,
    LiteLLMEmbeddingProvider,
    create_embedding_provider,
)

__all__ = [
    "EmbeddingGenerator",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "LiteLLMEmbeddingProvider",
    "create_embedding_provider",
]
