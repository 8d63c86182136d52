"""Message analysis: context window, similar history and a cached structured result."""

import asyncio
import json
import re
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError
from structlog.stdlib import BoundLogger

from huddle.application.prompts import ANALYSIS_QUERY_TEMPLATE, ANALYSIS_SYSTEM_PROMPT
from huddle.application.services.access import ConversationAccess
from huddle.application.services.chunker import TextChunker
from huddle.application.services.rag_service import RagService
from huddle.application.services.single_flight import SingleFlight
from huddle.config.models import AnalysisConfig
from huddle.domain.entities.analysis import AnalysisEvent, AnalysisFields, MessageAnalysis
from huddle.domain.entities.chunk import VectorMatch
from huddle.domain.entities.message import MessageView, utc_now
from huddle.domain.errors import HuddleError, InvalidRequestError, NotFoundError, UpstreamError
from huddle.domain.repositories import AnalysisRepository, MessageRepository
from huddle.infrastructure.llm import LanguageModel

CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_analysis_fields(text: str) -> AnalysisFields:
    """Read the model's JSON reply, keeping the raw text as summary otherwise."""
    candidate = CODE_FENCE_PATTERN.sub("", text.strip())
    start, end = candidate.find("{"), candidate.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(candidate[start : end + 1])
            if isinstance(data, dict):
                return AnalysisFields.model_validate(data)
        except (json.JSONDecodeError, ValidationError):
            pass
    return AnalysisFields(summary=text.strip())


@dataclass
class AnalysisOutcome:
    """What ``AnalysisService.start`` hands back to a transport.

    Exactly one of the fields is set: ``cached`` for a fresh stored
    analysis, ``events`` for a live run.
    """

    cached: MessageAnalysis | None = None
    events: AsyncIterator[AnalysisEvent] | None = None


class AnalysisService:
    """Analyzes a message in the context of its conversation.

    Results are cached per message for ``freshness_seconds``. Concurrent
    live runs for the same message share one computation.
    """

    def __init__(
        self,
        messages: MessageRepository,
        analyses: AnalysisRepository,
        access: ConversationAccess,
        rag: RagService,
        llm: LanguageModel,
        chunker: TextChunker,
        config: AnalysisConfig,
        logger: BoundLogger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._messages = messages
        self._analyses = analyses
        self._access = access
        self._rag = rag
        self._llm = llm
        self._chunker = chunker
        self._config = config
        self._logger = logger
        self._clock = clock
        self._flights: SingleFlight[MessageAnalysis] = SingleFlight()

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(seconds=self._config.freshness_seconds)

    async def start(self, message_id: str, user_id: str) -> AnalysisOutcome:
        """Authorize the request and return either the cached result or a live stream.

        Errors raised here happen before any stream is opened.

        Raises:
            InvalidRequestError: If ``message_id`` is empty.
            NotFoundError: If the message does not exist.
            AuthorizationError: If the user may not see the message.
        """
        if not message_id:
            raise InvalidRequestError("Message ID is required")

        message = await self._messages.get_view(message_id)
        if message is None:
            raise NotFoundError(f"Message not found: {message_id}")
        await self._access.ensure_can_view(user_id, message)

        cached = await self._analyses.get(message_id)
        if cached is not None and cached.is_fresh(self._clock(), self.freshness_window):
            self._logger.info("Serving cached analysis", message_id=message_id)
            return AnalysisOutcome(cached=cached)

        return AnalysisOutcome(events=self._stream(message, user_id))

    async def _stream(self, message: MessageView, user_id: str) -> AsyncIterator[AnalysisEvent]:
        yield AnalysisEvent.status("Starting analysis")

        progress: asyncio.Queue[str] = asyncio.Queue()
        task, leader = self._flights.start(
            message.id, lambda: self._compute(message, user_id, progress)
        )
        if leader:
            async for status in self._relay_progress(progress, task):
                yield status
        else:
            self._logger.info("Joining analysis in progress", message_id=message.id)
            yield AnalysisEvent.status("Analysis already in progress, waiting for result")

        try:
            analysis = await asyncio.shield(task)
        except UpstreamError as e:
            yield AnalysisEvent.error(str(e), e.detail)
            return
        except HuddleError as e:
            yield AnalysisEvent.error(str(e))
            return
        except Exception as e:
            self._logger.error("Analysis failed", message_id=message.id, error=str(e))
            yield AnalysisEvent.error("Analysis failed", str(e))
            return

        yield AnalysisEvent.result(analysis)

    async def _relay_progress(
        self, progress: asyncio.Queue[str], task: asyncio.Task[MessageAnalysis]
    ) -> AsyncIterator[AnalysisEvent]:
        """Yield status events until the computation finishes."""
        while True:
            getter = asyncio.create_task(progress.get())
            try:
                done, _ = await asyncio.wait(
                    [getter, task], return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                if not getter.done():
                    getter.cancel()
                    try:
                        await getter
                    except asyncio.CancelledError:
                        pass

            if getter in done and not getter.cancelled():
                yield AnalysisEvent.status(getter.result())
                continue
            break

        while not progress.empty():
            yield AnalysisEvent.status(progress.get_nowait())

    async def _compute(
        self, message: MessageView, user_id: str, progress: asyncio.Queue[str]
    ) -> MessageAnalysis:
        started = self._clock()
        self._logger.info("Analyzing message", message_id=message.id, user_id=user_id)

        progress.put_nowait("Fetching conversation context")
        preceding = await self._messages.get_preceding(message, self._config.context_messages)
        context = [self._context_entry(view) for view in [*preceding, message]]

        progress.put_nowait("Searching for similar messages")
        similar = await self._find_similar(message)

        progress.put_nowait("Generating analysis")
        prompt = ANALYSIS_QUERY_TEMPLATE.render(
            conversation_type=message.conversation_type,
            conversation_name=message.conversation_name,
            context=context,
            similar=similar,
        )
        reply = await self._llm.complete(prompt, system_prompt=ANALYSIS_SYSTEM_PROMPT)
        fields = parse_analysis_fields(reply)

        analysis = MessageAnalysis(
            message_id=message.id,
            **fields.model_dump(),
            context_messages=context,
            similar_messages=[match.to_context() for match in similar],
            created_at=self._clock(),
            created_by=user_id,
        )
        await self._analyses.save(analysis)

        self._logger.info(
            "Analysis completed",
            message_id=message.id,
            context_messages=len(context),
            similar_messages=len(similar),
            duration_seconds=(self._clock() - started).total_seconds(),
        )
        return analysis

    async def _find_similar(self, message: MessageView) -> list[VectorMatch]:
        # The target's own chunks are indexed too; ask for enough extra to drop them
        own_chunks = len(self._chunker.split_text(message.content))
        matches = await self._rag.retrieve(
            message.content,
            top_k=self._config.similar_top_k + own_chunks,
            min_score=self._config.similar_min_score,
            # The cached analysis is shown to every viewer of this conversation
            conversation_ids=[message.conversation_key],
        )
        related = [match for match in matches if match.metadata.message_id != message.id]
        return related[: self._config.similar_top_k]

    def _context_entry(self, view: MessageView) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "id": view.id,
            "sender": view.sender,
            "sender_id": view.sender_id,
            "content": view.content,
            "created_at": view.created_at.isoformat(),
            "is_chunked": False,
            "total_chunks": 1,
        }
        if len(view.content) > self._chunker.chunk_size:
            segments = self._chunker.split_text(view.content)
            entry.update(content=segments[0], is_chunked=True, total_chunks=len(segments))
        return entry
