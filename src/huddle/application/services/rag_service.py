"""Retrieval-augmented question answering over the chat index."""

from typing import Any

from pydantic import BaseModel, Field
from structlog.stdlib import BoundLogger

from huddle.application.prompts import RAG_QUERY_TEMPLATE
from huddle.application.services.access import ConversationAccess
from huddle.config.models import RagConfig
from huddle.domain.entities.chunk import IndexStats, VectorMatch
from huddle.domain.errors import InvalidRequestError
from huddle.domain.repositories import VectorIndex
from huddle.infrastructure.embeddings import EmbeddingGenerator
from huddle.infrastructure.llm import LanguageModel


class RagAnswer(BaseModel):
    """A generated answer and the chunks it was grounded on."""

    answer: str
    context: list[VectorMatch] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "context": [match.to_context() for match in self.context],
        }


class RagService:
    """Answers questions from retrieved chat history.

    One query embedding, one index query and one language model call per
    answer. Failures propagate; there is no fallback answer.
    """

    def __init__(
        self,
        embeddings: EmbeddingGenerator,
        index: VectorIndex,
        llm: LanguageModel,
        access: ConversationAccess,
        config: RagConfig,
        logger: BoundLogger,
    ) -> None:
        self._embeddings = embeddings
        self._index = index
        self._llm = llm
        self._access = access
        self._config = config
        self._logger = logger

    async def retrieve(
        self,
        text: str,
        top_k: int | None = None,
        min_score: float | None = None,
        conversation_ids: list[str] | None = None,
    ) -> list[VectorMatch]:
        """Find indexed chunks similar to ``text``.

        Args:
            text: Text to search for.
            top_k: Maximum matches; defaults to the configured value.
            min_score: Similarity threshold; defaults to the configured value.
            conversation_ids: Restrict the search to these conversation keys.
                An empty list returns no matches without embedding.

        Returns:
            Matches ordered by descending score.
        """
        if conversation_ids is not None and not conversation_ids:
            self._logger.debug("No conversations to search")
            return []

        vector = await self._embeddings.embed_query(text)
        matches = await self._index.query(
            vector,
            top_k=top_k if top_k is not None else self._config.top_k,
            min_score=min_score if min_score is not None else self._config.min_score,
            conversation_ids=conversation_ids,
        )
        self._logger.debug(
            "Retrieved context",
            matches=len(matches),
            conversations=len(conversation_ids) if conversation_ids is not None else None,
        )
        return matches

    async def answer(
        self,
        query: Any,
        user_id: str,
        channel_id: str | None = None,
    ) -> RagAnswer:
        """Answer ``query`` grounded in retrieved messages.

        Retrieval only sees conversations ``user_id`` belongs to: the given
        channel, or every channel and DM of the user when unscoped.

        Args:
            query: The question. Must be a non-empty string.
            user_id: Requesting user.
            channel_id: Restrict retrieval to one channel the user belongs to.

        Raises:
            InvalidRequestError: If the query is missing or empty.
            AuthorizationError: If the user is not a member of ``channel_id``.
            UpstreamError: If embedding, retrieval or generation fails.
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidRequestError("Query is required")

        if channel_id is not None:
            await self._access.ensure_channel_member(user_id, channel_id)
            conversation_ids = [f"channel:{channel_id}"]
        else:
            conversation_ids = await self._access.visible_conversations(user_id)

        matches = await self.retrieve(query, conversation_ids=conversation_ids)
        prompt = RAG_QUERY_TEMPLATE.render(matches=matches, query=query)
        text = await self._llm.complete(prompt, system_prompt=self._config.system_prompt)

        self._logger.info(
            "Answered question",
            user_id=user_id,
            context_matches=len(matches),
            answer_length=len(text),
        )
        return RagAnswer(answer=text, context=matches)

    async def stats(self) -> IndexStats:
        return await self._index.stats()
