"""Configuration module for huddle."""

from huddle.config.loader import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    EnvVarNotFoundError,
    load_config,
)
from huddle.config.models import (
    AnalysisConfig,
    AppConfig,
    ChunkingConfig,
    DatabaseConfig,
    EmbeddingConfig,
    LLMConfig,
    LoggingConfig,
    PersonaConfig,
    RagConfig,
    RealtimeConfig,
    ServerConfig,
    VectorIndexConfig,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "EnvVarNotFoundError",
    # Functions
    "load_config",
    # Models
    "AnalysisConfig",
    "AppConfig",
    "ChunkingConfig",
    "DatabaseConfig",
    "EmbeddingConfig",
    "LLMConfig",
    "LoggingConfig",
    "PersonaConfig",
    "RagConfig",
    "RealtimeConfig",
    "ServerConfig",
    "VectorIndexConfig",
]
