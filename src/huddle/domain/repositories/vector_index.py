"""VectorIndex protocol."""

from typing import Protocol

from huddle.domain.entities.chunk import IndexStats, VectorMatch, VectorRecord


class VectorIndex(Protocol):
    """Similarity index over chunk embeddings.

    Implementations overwrite by ID on upsert and report similarity as a
    score in ``[0, 1]`` where higher is more similar.
    """

    async def upsert(self, records: list[VectorRecord]) -> int:
        """Insert or overwrite records keyed by ID.

        Returns:
            Number of records written.
        """
        ...

    async def query(
        self,
        vector: list[float],
        top_k: int,
        min_score: float = 0.0,
        conversation_ids: list[str] | None = None,
    ) -> list[VectorMatch]:
        """Return up to ``top_k`` matches scoring at least ``min_score``.

        Args:
            vector: Query embedding.
            top_k: Maximum number of matches.
            min_score: Minimum similarity score.
            conversation_ids: Restrict matches to these conversation keys.
                ``None`` searches everything; an empty list matches nothing.

        Returns:
            Matches ordered by descending score.
        """
        ...

    async def delete_by_message_id(self, message_id: str) -> int:
        """Delete every vector derived from a message.

        Returns:
            Number of vectors deleted.
        """
        ...

    async def stats(self) -> IndexStats:
        """Return vector count, dimension and per-namespace counts."""
        ...
