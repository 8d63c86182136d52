"""Batched embedding generation."""

import asyncio
from collections.abc import Awaitable, Callable

from structlog.stdlib import BoundLogger

from huddle.config.models import EmbeddingConfig
from huddle.domain.entities.chunk import Chunk, VectorRecord
from huddle.domain.errors import UpstreamError
from huddle.infrastructure.embeddings.provider import EmbeddingProvider

# Appended to the second request when two half-width vectors are concatenated
DUAL_CALL_SUFFIX = " [alternate]"


class EmbeddingGenerator:
    """Embeds texts in bounded batches with a cool-down between batches.

    Batches run strictly one after another; the texts within a batch are
    embedded concurrently. Output order matches input order. A failure in
    any text fails the whole call, with no retry.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        config: EmbeddingConfig,
        logger: BoundLogger,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._config = config
        self._logger = logger
        self._sleep = sleep

    @property
    def dimension(self) -> int:
        return self._config.dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts``, one vector per text, in input order.

        Raises:
            UpstreamError: If any provider call fails or returns the wrong width.
        """
        batch_size = self._config.batch_size
        vectors: list[list[float]] = []
        total_batches = (len(texts) + batch_size - 1) // batch_size

        for batch_number, start in enumerate(range(0, len(texts), batch_size)):
            if batch_number > 0 and self._config.batch_delay > 0:
                await self._sleep(self._config.batch_delay)

            batch = texts[start : start + batch_size]
            vectors.extend(await self._embed_batch(batch))
            self._logger.debug(
                "Embedded batch",
                batch=batch_number + 1,
                total_batches=total_batches,
                size=len(batch),
            )

        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query text."""
        (vector,) = await self.embed([text])
        return vector

    async def embed_chunks(self, chunks: list[Chunk]) -> list[VectorRecord]:
        """Embed chunk contents and pair each vector with its chunk."""
        vectors = await self.embed([chunk.content for chunk in chunks])
        return [
            VectorRecord(
                id=chunk.id,
                vector=vector,
                content=chunk.content,
                metadata=chunk.metadata,
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        try:
            return list(await asyncio.gather(*(self._embed_one(text) for text in batch)))
        except UpstreamError:
            raise
        except Exception as e:
            self._logger.error("Embedding batch failed", size=len(batch), error=str(e))
            raise UpstreamError("Embedding request failed", detail=str(e)) from e

    async def _embed_one(self, text: str) -> list[float]:
        if self._config.dual_call:
            first, second = await asyncio.gather(
                self._provider.embed_text(text),
                self._provider.embed_text(text + DUAL_CALL_SUFFIX),
            )
            vector = first + second
        else:
            vector = await self._provider.embed_text(text)

        if len(vector) != self._config.dimension:
            raise UpstreamError(
                "Embedding has unexpected width",
                detail=f"expected {self._config.dimension}, got {len(vector)}",
            )
        return vector
