"""Pydantic models for application configuration."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

DEFAULT_RAG_SYSTEM_PROMPT = (
    "You are a helpful assistant answering questions about a team's chat "
    "history. Ground your answer in the provided context. If the context is "
    "insufficient to answer, say so instead of guessing."
)


class DatabaseConfig(BaseModel):
    """Relational store connection configuration."""

    url: str = Field(
        ...,
        description=(
            "SQLAlchemy-style async connection URL "
            "(e.g., 'sqlite+aiosqlite:///path/to/huddle.db')."
        ),
    )


class LLMConfig(BaseModel):
    """Language model configuration for LiteLLM or Ollama."""

    model_id: str
    params: dict[str, Any] = Field(default_factory=dict)
    client_args: dict[str, Any] = Field(default_factory=dict)


class EmbeddingConfig(BaseModel):
    """Embedding provider configuration."""

    model_id: str = "text-embedding-3-small"
    dimension: int = Field(default=1536, gt=0)
    batch_size: int = Field(
        default=20,
        ge=1,
        le=20,
        description="Texts embedded concurrently per provider batch.",
    )
    batch_delay: float = Field(
        default=1.0,
        ge=0,
        description="Cool-down in seconds between consecutive batches.",
    )
    dual_call: bool = Field(
        default=False,
        description=(
            "Embed each text twice (plain and suffixed) and concatenate the "
            "vectors to reach `dimension` with a model of half that width."
        ),
    )
    params: dict[str, Any] = Field(default_factory=dict)
    client_args: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_dual_call_width(self) -> "EmbeddingConfig":
        if self.dual_call and self.dimension % 2 != 0:
            raise ValueError("dimension must be even when dual_call is enabled")
        return self


class VectorIndexConfig(BaseModel):
    """LanceDB vector index configuration."""

    uri: str = "./data/vectors"
    table_name: str = "messages"
    upsert_batch_size: int = Field(default=100, ge=1, le=100)


class ChunkingConfig(BaseModel):
    """Character-based chunking configuration."""

    chunk_size: int = Field(default=500, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class RagConfig(BaseModel):
    """Retrieval-augmented answering configuration."""

    top_k: int = Field(default=5, gt=0)
    min_score: float = Field(default=0.7, ge=0.0, le=1.0)
    system_prompt: str = DEFAULT_RAG_SYSTEM_PROMPT


class AnalysisConfig(BaseModel):
    """Message analysis configuration."""

    freshness_seconds: float = Field(default=3600.0, gt=0)
    context_messages: int = Field(default=5, ge=0)
    similar_top_k: int = Field(default=5, gt=0)
    similar_min_score: float = Field(default=0.7, ge=0.0, le=1.0)


class RealtimeConfig(BaseModel):
    """Realtime fan-out configuration."""

    resubscribe_delay: float = Field(default=5.0, ge=0)
    max_resubscribe_attempts: int = Field(default=5, ge=0)
    heartbeat_interval: float = Field(default=15.0, gt=0)
    typing_timeout: float = Field(
        default=1.0,
        gt=0,
        description="Inactivity window after which clients clear their typing flag.",
    )


class PersonaConfig(BaseModel):
    """Persona simulator configuration."""

    sample_messages: int = Field(default=50, gt=0)
    context_messages: int = Field(default=10, ge=0)


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"


class AppConfig(BaseModel):
    """Application configuration."""

    database: DatabaseConfig
    llm: LLMConfig
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vector_index: VectorIndexConfig = Field(default_factory=VectorIndexConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    rag: RagConfig = Field(default_factory=RagConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    persona: PersonaConfig = Field(default_factory=PersonaConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
