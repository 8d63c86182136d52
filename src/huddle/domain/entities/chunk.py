"""Chunk and vector entities for the semantic index."""

from typing import Any

from pydantic import BaseModel, Field


class ChunkMetadata(BaseModel):
    """Metadata carried by a chunk and mirrored onto its vector.

    Attributes:
        message_id: ID of the message the text came from.
        sender: Sender username.
        channel: Conversation display name ("direct_message" for DMs).
        conversation_id: Routing key of the conversation (``channel:<id>``).
        created_at: ISO-8601 creation time of the message.
        type: Message type ("user" or "system").
        chunk_index: Position of this chunk within the message.
        total_chunks: Number of chunks the message was split into.
        original_message_id: Set only when the message was split.
    """

    message_id: str
    sender: str = "system"
    channel: str = "direct_message"
    conversation_id: str = ""
    created_at: str = ""
    type: str = "user"
    chunk_index: int = 0
    total_chunks: int = 1
    original_message_id: str | None = None


class Document(BaseModel):
    """Text to be chunked, identified by its message ID."""

    id: str
    content: str
    metadata: ChunkMetadata


class Chunk(BaseModel):
    """A bounded segment of a document, ready for embedding.

    The ID is the message ID for unsplit messages and
    ``{message_id}_chunk_{n}`` otherwise.
    """

    id: str
    content: str
    metadata: ChunkMetadata

    @property
    def chunk_index(self) -> int:
        return self.metadata.chunk_index


class VectorRecord(BaseModel):
    """An embedding plus the metadata and raw text stored alongside it."""

    id: str
    vector: list[float]
    content: str
    metadata: ChunkMetadata


class VectorMatch(BaseModel):
    """A query hit with a similarity score in ``[0, 1]``."""

    id: str
    score: float
    content: str
    metadata: ChunkMetadata

    def to_context(self) -> dict[str, Any]:
        """Return the provenance shape shown to callers."""
        return {
            "id": self.id,
            "content": self.content,
            "metadata": {
                "score": self.score,
                "sender": self.metadata.sender,
                "channel": self.metadata.channel,
                "created_at": self.metadata.created_at,
                "type": self.metadata.type,
                "message_id": self.metadata.message_id,
            },
        }


class IndexStats(BaseModel):
    """Observability snapshot of the vector index."""

    total_vector_count: int
    dimension: int
    namespaces: dict[str, dict[str, int]] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "totalVectorCount": self.total_vector_count,
            "dimension": self.dimension,
            "namespaces": self.namespaces,
        }
