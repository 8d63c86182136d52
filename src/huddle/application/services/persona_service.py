"""Chat-with-a-persona simulator built from a user's message history."""

from typing import Any

from structlog.stdlib import BoundLogger

from huddle.application.prompts import (
    PERSONA_CHAT_SYSTEM_TEMPLATE,
    PERSONA_QUERY_TEMPLATE,
    PERSONA_SYSTEM_PROMPT,
)
from huddle.config.models import PersonaConfig
from huddle.domain.entities.persona import Persona
from huddle.domain.errors import InvalidRequestError, NotFoundError
from huddle.domain.repositories import (
    MembershipRepository,
    MessageRepository,
    PersonaRepository,
)
from huddle.infrastructure.llm import LanguageModel


class PersonaService:
    """Generates communication-style personas and chats as them."""

    def __init__(
        self,
        messages: MessageRepository,
        membership: MembershipRepository,
        personas: PersonaRepository,
        llm: LanguageModel,
        config: PersonaConfig,
        logger: BoundLogger,
    ) -> None:
        self._messages = messages
        self._membership = membership
        self._personas = personas
        self._llm = llm
        self._config = config
        self._logger = logger

    async def generate(self, user_id: str, username: str | None = None) -> Persona:
        """Describe a user's communication style and store it as their persona.

        Args:
            user_id: The user to profile.
            username: Display name for the persona; defaults to the stored username.

        Raises:
            NotFoundError: If the user does not exist.
            InvalidRequestError: If the user has no messages to learn from.
            UpstreamError: If the language model call fails.
        """
        user = await self._membership.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        name = username or user.username

        recent = await self._messages.list_by_sender(user_id, self._config.sample_messages)
        if not recent:
            raise InvalidRequestError("No messages found for this user")

        description = await self._llm.complete(
            PERSONA_QUERY_TEMPLATE.render(username=name, messages=recent),
            system_prompt=PERSONA_SYSTEM_PROMPT,
        )
        persona = await self._personas.save(
            Persona(user_id=user_id, persona_name=name, persona_description=description)
        )
        self._logger.info(
            "Persona generated", user_id=user_id, sample_messages=len(recent)
        )
        return persona

    async def get(self, user_id: str) -> Persona:
        persona = await self._personas.get_by_user(user_id)
        if persona is None:
            raise NotFoundError(f"Persona not found for user: {user_id}")
        return persona

    async def chat(self, user_id: str, message: Any) -> str:
        """Reply to ``message`` in the voice of ``user_id``'s persona."""
        if not isinstance(message, str) or not message.strip():
            raise InvalidRequestError("Message is required")

        persona = await self.get(user_id)
        recent = await self._messages.list_by_sender(user_id, self._config.context_messages)
        system_prompt = PERSONA_CHAT_SYSTEM_TEMPLATE.render(persona=persona, messages=recent)
        reply = await self._llm.complete(message, system_prompt=system_prompt)
        self._logger.info("Persona replied", user_id=user_id, reply_length=len(reply))
        return reply
