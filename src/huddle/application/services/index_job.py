"""Batch (re)indexing of chat history into the vector index."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from structlog.stdlib import BoundLogger

from huddle.application.services.chunker import TextChunker
from huddle.domain.entities.chunk import Chunk, ChunkMetadata, Document
from huddle.domain.entities.message import MessageView
from huddle.domain.errors import InvalidRequestError
from huddle.domain.repositories import MessageRepository, VectorIndex
from huddle.infrastructure.embeddings import EmbeddingGenerator

DEFAULT_BATCH_SIZE = 100


class IndexMode(str, Enum):
    """Which messages an index run covers."""

    FULL = "full"
    INCREMENTAL = "incremental"


class IndexSummary(BaseModel):
    """Outcome of an index run.

    Vector counts are None on dry runs, which never touch the index.
    """

    mode: IndexMode
    messages_processed: int
    chunks_processed: int
    initial_vector_count: int | None = None
    final_vector_count: int | None = None
    vectors_added: int | None = None
    dry_run: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "messagesProcessed": self.messages_processed,
            "chunksProcessed": self.chunks_processed,
            "initialVectorCount": self.initial_vector_count,
            "finalVectorCount": self.final_vector_count,
            "vectorsAdded": self.vectors_added,
            "dryRun": self.dry_run,
        }


def message_document(view: MessageView) -> Document:
    """Build the chunker input for a stored message."""
    return Document(
        id=view.id,
        content=view.content,
        metadata=ChunkMetadata(
            message_id=view.id,
            sender=view.sender,
            channel=view.conversation_name,
            conversation_id=view.conversation_key,
            created_at=view.created_at.isoformat(),
            type="user",
        ),
    )


class IndexJob:
    """Chunks, embeds and upserts messages batch by batch.

    Batches run strictly in sequence. A failing batch aborts the run with
    the error; nothing is retried, and batches already written stay in the
    index. Each message's previous vectors are replaced, so re-running is
    safe even after an edit changes its chunk count.
    """

    def __init__(
        self,
        messages: MessageRepository,
        chunker: TextChunker,
        embeddings: EmbeddingGenerator,
        index: VectorIndex,
        logger: BoundLogger,
    ) -> None:
        self._messages = messages
        self._chunker = chunker
        self._embeddings = embeddings
        self._index = index
        self._logger = logger

    async def run(
        self,
        mode: IndexMode = IndexMode.FULL,
        since: datetime | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = False,
    ) -> IndexSummary:
        """Index messages.

        Args:
            mode: Full history, or only messages created after ``since``.
            since: Required for incremental mode.
            batch_size: Messages per embed-and-upsert round.
            dry_run: Report what would be processed without calling the
                embedding provider or the index.

        Raises:
            InvalidRequestError: If the options are inconsistent.
            UpstreamError: If an embedding or index call fails.
        """
        if mode == IndexMode.INCREMENTAL and since is None:
            raise InvalidRequestError("Incremental mode requires a since timestamp")
        if batch_size < 1:
            raise InvalidRequestError("Batch size must be positive")

        self._logger.info(
            "Starting index run",
            mode=mode.value,
            since=since.isoformat() if since else None,
            batch_size=batch_size,
            dry_run=dry_run,
        )

        initial_count = None
        if not dry_run:
            initial_count = (await self._index.stats()).total_vector_count
            self._logger.info("Initial index stats", total_vector_count=initial_count)

        if mode == IndexMode.INCREMENTAL:
            views = await self._messages.list_since(since)  # type: ignore[arg-type]
        else:
            views = await self._messages.list_all()
        views = [view for view in views if view.content.strip()]
        self._logger.info("Found messages to process", count=len(views))

        chunk_count = 0
        total_batches = (len(views) + batch_size - 1) // batch_size
        for batch_number, start in enumerate(range(0, len(views), batch_size), start=1):
            batch = views[start : start + batch_size]
            chunks: list[Chunk] = []
            for view in batch:
                chunks.extend(self._chunker.chunk(message_document(view)))
            chunk_count += len(chunks)

            if not dry_run:
                records = await self._embeddings.embed_chunks(chunks)
                # A message that now splits into fewer chunks must not keep its old tail
                for view in batch:
                    await self._index.delete_by_message_id(view.id)
                await self._index.upsert(records)

            self._logger.info(
                "Processed batch",
                batch=batch_number,
                total_batches=total_batches,
                messages=min(start + batch_size, len(views)),
                total_messages=len(views),
                chunks=len(chunks),
            )

        summary = IndexSummary(
            mode=mode,
            messages_processed=len(views),
            chunks_processed=chunk_count,
            dry_run=dry_run,
        )
        if not dry_run:
            final_count = (await self._index.stats()).total_vector_count
            summary.initial_vector_count = initial_count
            summary.final_vector_count = final_count
            summary.vectors_added = final_count - (initial_count or 0)

        self._logger.info("Index run completed", **summary.to_payload())
        return summary
