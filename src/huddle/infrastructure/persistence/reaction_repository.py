"""SQL implementation of ReactionRepository."""

from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from huddle.domain.entities.reaction import Reaction, ReactionSummary
from huddle.infrastructure.persistence.database import Database


class SqlReactionRepository:
    """SQLModel-backed reaction store."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def toggle(self, message_id: str, user_id: str, emoji: str) -> bool:
        """Add the reaction if absent, otherwise remove it.

        Returns:
            True if the reaction is present afterwards.
        """
        try:
            async with self._database.get_session() as session:
                result = await session.execute(
                    select(Reaction)
                    .where(Reaction.message_id == message_id)
                    .where(Reaction.user_id == user_id)
                    .where(Reaction.emoji == emoji)
                )
                existing = result.scalars().first()
                if existing is not None:
                    await session.delete(existing)
                    return False
                session.add(Reaction(message_id=message_id, user_id=user_id, emoji=emoji))
                return True
        except IntegrityError:
            # A concurrent toggle inserted the same reaction between our read and commit
            return True

    async def list_for_message(self, message_id: str) -> list[ReactionSummary]:
        async with self._database.get_session() as session:
            result = await session.execute(
                select(Reaction)
                .where(Reaction.message_id == message_id)
                .order_by(Reaction.emoji, Reaction.created_at)  # type: ignore[arg-type]
            )
            reactions = list(result.scalars().all())

        users_by_emoji: dict[str, list[str]] = {}
        for reaction in reactions:
            users_by_emoji.setdefault(reaction.emoji, []).append(reaction.user_id)
        return [
            ReactionSummary(emoji=emoji, count=len(users), users=users)
            for emoji, users in sorted(users_by_emoji.items())
        ]
