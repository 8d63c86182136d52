"""Domain entities."""

from huddle.domain.entities.analysis import (
    AnalysisEvent,
    AnalysisEventType,
    AnalysisFields,
    MessageAnalysis,
)
from huddle.domain.entities.change import (
    ChangeOperation,
    ChangeTable,
    DataChange,
    RealtimeEvent,
    RealtimeEventType,
)
from huddle.domain.entities.chunk import (
    Chunk,
    ChunkMetadata,
    Document,
    IndexStats,
    VectorMatch,
    VectorRecord,
)
from huddle.domain.entities.message import (
    Channel,
    ChannelMember,
    ChatMessage,
    DirectMessageMember,
    DirectMessageThread,
    MessageView,
    User,
)
from huddle.domain.entities.persona import Persona
from huddle.domain.entities.reaction import Reaction, ReactionSummary

__all__ = [
    "AnalysisEvent",
    "AnalysisEventType",
    "AnalysisFields",
    "ChangeOperation",
    "ChangeTable",
    "Channel",
    "ChannelMember",
    "ChatMessage",
    "Chunk",
    "ChunkMetadata",
    "DataChange",
    "DirectMessageMember",
    "DirectMessageThread",
    "Document",
    "IndexStats",
    "MessageAnalysis",
    "MessageView",
    "Persona",
    "Reaction",
    "ReactionSummary",
    "RealtimeEvent",
    "RealtimeEventType",
    "User",
    "VectorMatch",
    "VectorRecord",
]
