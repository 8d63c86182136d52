"""Embedding providers: LiteLLM for real models, feature hashing for mock runs."""

import hashlib
import os
import re
from typing import Any, Protocol

import litellm
import numpy as np

from huddle.config.models import EmbeddingConfig

TOKEN_PATTERN = re.compile(r"\w+")


class EmbeddingProvider(Protocol):
    """Turns one text into one vector."""

    async def embed_text(self, text: str) -> list[float]:
        """Return the embedding of ``text``."""
        ...


class LiteLLMEmbeddingProvider:
    """Embeds through ``litellm.aembedding``, one input per request."""

    def __init__(self, config: EmbeddingConfig) -> None:
        self._model_id = config.model_id
        self._params = config.params
        self._client_args = config.client_args

    async def embed_text(self, text: str) -> list[float]:
        response = await litellm.aembedding(
            model=self._model_id,
            input=[text],
            **self._params,
            **self._client_args,
        )
        item: Any = response.data[0]
        embedding = item["embedding"] if isinstance(item, dict) else item.embedding
        return [float(value) for value in embedding]


class HashEmbeddingProvider:
    """Deterministic bag-of-words embedding using signed feature hashing.

    Texts sharing words get positive cosine similarity and identical texts
    score 1.0, which is enough for offline runs and tests. It carries no
    real semantics.
    """

    def __init__(self, dimension: int) -> None:
        self._dimension = dimension

    async def embed_text(self, text: str) -> list[float]:
        vector = np.zeros(self._dimension, dtype=np.float64)
        for token in TOKEN_PATTERN.findall(text.lower()):
            digest = hashlib.sha256(token.encode()).digest()
            index = int.from_bytes(digest[:4], "little") % self._dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[index] += sign

        norm = np.linalg.norm(vector)
        if norm == 0:
            # Cosine distance is undefined for the zero vector
            vector[0] = 1.0
            norm = 1.0
        return (vector / norm).tolist()


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """Create an embedding provider based on configuration and environment.

    Returns:
        HashEmbeddingProvider if MOCK_LLM=true, otherwise LiteLLMEmbeddingProvider.
        With ``dual_call`` the provider is sized for half of ``dimension``.
    """
    if os.getenv("MOCK_LLM", "").lower() == "true":
        width = config.dimension // 2 if config.dual_call else config.dimension
        return HashEmbeddingProvider(width)

    return LiteLLMEmbeddingProvider(config)
