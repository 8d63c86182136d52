"""Tests for MockModel."""

import pytest

from huddle.infrastructure.llm import MockModel


async def _collect(model: MockModel) -> list[dict]:
    return [event async for event in model.stream(messages=[], system_prompt="test")]


class TestMockModel:
    """Tests for MockModel class."""

    async def test_stream_ends_with_message_stop(self) -> None:
        events = await _collect(MockModel())

        assert "contentBlockStart" in events[0]
        assert events[-1] == {"messageStop": {"stopReason": "end_turn"}}

    async def test_stream_reassembles_response_text(self) -> None:
        events = await _collect(MockModel(response_text='{"summary": "ok"}'))

        text = "".join(
            e["contentBlockDelta"]["delta"]["text"]
            for e in events
            if "contentBlockDelta" in e
        )
        assert text == '{"summary": "ok"}'

    async def test_raise_error(self) -> None:
        with pytest.raises(RuntimeError):
            await _collect(MockModel(raise_error=True))

    def test_config_round_trip(self) -> None:
        model = MockModel()

        model.update_config(temperature=0.2)

        assert model.get_config() == {"temperature": 0.2}
