"""Language model factory and completion client."""

import os
from typing import Any, Protocol

from strands import Agent
from strands.models.litellm import LiteLLMModel
from strands.models.ollama import OllamaModel
from structlog.stdlib import BoundLogger

from huddle.config.models import LLMConfig
from huddle.domain.errors import UpstreamError
from huddle.infrastructure.llm.mock_model import MockModel

Model = LiteLLMModel | OllamaModel | MockModel


def create_model(config: LLMConfig) -> Model:
    """Create a model based on configuration and environment.

    Args:
        config: LLM configuration.

    Returns:
        MockModel if MOCK_LLM=true (or =error), OllamaModel if model_id
        starts with "ollama/", otherwise LiteLLMModel.
    """
    mock_llm = os.getenv("MOCK_LLM", "").lower()

    if mock_llm == "true":
        return MockModel()

    if mock_llm == "error":
        return MockModel(raise_error=True)

    if config.model_id.startswith("ollama/"):
        return OllamaModel(
            host=config.client_args.get("api_base"),
            model_id=config.model_id.removeprefix("ollama/"),
            **config.params,
        )

    return LiteLLMModel(
        model_id=config.model_id,
        params=config.params,
        client_args=config.client_args,
    )


class LanguageModel(Protocol):
    """Single-shot text completion."""

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        """Return the model's reply to ``prompt``.

        Raises:
            UpstreamError: If the provider call fails.
        """
        ...


class AgentLanguageModel:
    """LanguageModel backed by a fresh strands Agent per call.

    Calls are independent; no conversation history is carried over.
    """

    def __init__(self, config: LLMConfig, logger: BoundLogger) -> None:
        self._config = config
        self._logger = logger

    async def complete(self, prompt: str, system_prompt: str | None = None) -> str:
        agent = Agent(
            model=create_model(self._config),
            system_prompt=system_prompt,
            tools=[],
            callback_handler=None,
        )
        try:
            result = await agent.invoke_async(prompt)
        except Exception as e:
            self._logger.error(
                "Language model call failed",
                model_id=self._config.model_id,
                error=str(e),
            )
            raise UpstreamError("Language model call failed", detail=str(e)) from e

        text = extract_response_text(result)
        self._logger.debug(
            "Language model call completed",
            model_id=self._config.model_id,
            response_length=len(text),
        )
        return text


def extract_response_text(result: Any) -> str:
    """Concatenate the text blocks of an agent result."""
    if result is None:
        return ""

    message = getattr(result, "message", None)
    if isinstance(message, dict) and isinstance(message.get("content"), list):
        texts = [
            block["text"]
            for block in message["content"]
            if isinstance(block, dict) and "text" in block
        ]
        if texts:
            return "".join(texts)

    return str(result)
