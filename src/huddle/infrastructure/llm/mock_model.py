"""Mock LLM model for running without provider credentials."""

from typing import Any, AsyncGenerator, AsyncIterable, TypeVar

from strands.models import Model
from strands.types.content import Messages
from strands.types.streaming import StreamEvent

T = TypeVar("T")

DEFAULT_MOCK_RESPONSE = "Mock LLM response"


class MockModel(Model):
    """Model that streams a canned reply word by word."""

    def __init__(
        self, response_text: str = DEFAULT_MOCK_RESPONSE, raise_error: bool = False
    ) -> None:
        """Initialize the mock model.

        Args:
            response_text: Text returned for every request.
            raise_error: If True, raise an error on stream.
        """
        self._response_text = response_text
        self._raise_error = raise_error
        self._config: dict[str, Any] = {}

    async def stream(
        self,
        messages: Messages,
        tool_specs: list[Any] | None = None,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterable[StreamEvent]:
        """Stream the canned response.

        Raises:
            RuntimeError: If raise_error is True.
        """
        if self._raise_error:
            raise RuntimeError("Mock LLM error for testing")

        yield {
            "contentBlockStart": {
                "contentBlockIndex": 0,
                "start": {"text": ""},
            }
        }
        words = self._response_text.split(" ")
        for i, word in enumerate(words):
            text = word if i == len(words) - 1 else f"{word} "
            yield {
                "contentBlockDelta": {
                    "delta": {"text": text},
                    "contentBlockIndex": 0,
                }
            }
        yield {"contentBlockStop": {"contentBlockIndex": 0}}
        yield {"messageStop": {"stopReason": "end_turn"}}

    async def structured_output(
        self,
        output_model: type[T],
        prompt: Messages,
        **kwargs: Any,
    ) -> AsyncGenerator[dict[str, T | Any], None]:
        """Structured output is not supported by the mock."""
        yield {}
        return

    def update_config(self, **model_config: Any) -> None:
        self._config.update(model_config)

    def get_config(self) -> dict[str, Any]:
        return self._config
