"""Recursive character chunking with overlap."""

from huddle.config.models import ChunkingConfig
from huddle.domain.entities.chunk import Chunk, Document

# Paragraph, line, word, character
DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


class TextChunker:
    """Splits long texts into overlapping segments of bounded size.

    Sizes are character counts, not tokens. Each segment after the first
    starts with up to ``chunk_overlap`` trailing characters of the previous
    one. Pieces are found by trying separators from coarsest to finest and
    only descending to a finer separator for pieces still over the limit.
    With the empty-string separator last, no chunk exceeds ``chunk_size``;
    without it, a piece containing none of the separators becomes its own
    oversized chunk.
    """

    def __init__(
        self,
        config: ChunkingConfig,
        separators: tuple[str, ...] = DEFAULT_SEPARATORS,
    ) -> None:
        self._chunk_size = config.chunk_size
        self._chunk_overlap = config.chunk_overlap
        self._separators = separators

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def chunk(self, document: Document) -> list[Chunk]:
        """Split a document into chunks with deterministic IDs.

        Documents that fit in one chunk keep their own ID; split documents
        yield ``{id}_chunk_{n}`` with index, total and original ID recorded
        in the metadata.
        """
        if len(document.content) <= self._chunk_size:
            metadata = document.metadata.model_copy(
                update={"chunk_index": 0, "total_chunks": 1, "original_message_id": None}
            )
            return [Chunk(id=document.id, content=document.content, metadata=metadata)]

        segments = self.split_text(document.content)
        return [
            Chunk(
                id=f"{document.id}_chunk_{index}",
                content=segment,
                metadata=document.metadata.model_copy(
                    update={
                        "chunk_index": index,
                        "total_chunks": len(segments),
                        "original_message_id": document.id,
                    }
                ),
            )
            for index, segment in enumerate(segments)
        ]

    def split_text(self, text: str) -> list[str]:
        """Split ``text`` into overlapping segments."""
        if len(text) <= self._chunk_size:
            return [text]
        return self._merge(self._split_pieces(text, self._separators))

    def _split_pieces(self, text: str, separators: tuple[str, ...]) -> list[str]:
        """Cut text into pieces no longer than the limit where possible.

        Separators stay attached to the end of the piece they follow, so the
        pieces concatenate back to ``text``.
        """
        if len(text) <= self._chunk_size:
            return [text]

        for position, separator in enumerate(separators):
            if separator == "":
                # Single characters, so merging can still carry the overlap
                return list(text)
            if separator in text:
                finer = separators[position + 1 :]
                break
        else:
            return [text]

        parts = text.split(separator)
        pieces: list[str] = []
        for i, part in enumerate(parts):
            if i < len(parts) - 1:
                part += separator
            if not part:
                continue
            if len(part) <= self._chunk_size:
                pieces.append(part)
            else:
                pieces.extend(self._split_pieces(part, finer))
        return pieces

    def _merge(self, pieces: list[str]) -> list[str]:
        segments: list[str] = []
        current = ""
        for piece in pieces:
            if current and len(current) + len(piece) > self._chunk_size:
                segments.append(current)
                overlap = self._overlap_tail(current)
                room = self._chunk_size - len(piece)
                if len(overlap) > room:
                    overlap = overlap[len(overlap) - room :] if room > 0 else ""
                current = overlap + piece
            else:
                current += piece
        if current:
            segments.append(current)
        return segments

    def _overlap_tail(self, segment: str) -> str:
        if self._chunk_overlap == 0:
            return ""
        return segment[-self._chunk_overlap :]
