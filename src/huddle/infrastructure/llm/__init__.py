"""Language model infrastructure."""

from huddle.infrastructure.llm.mock_model import MockModel
from huddle.infrastructure.llm.model_factory import (
    AgentLanguageModel,
    LanguageModel,
    create_model,
)

__all__ = ["AgentLanguageModel", "LanguageModel", "MockModel", "create_model"]
