"""Tests for SqlAnalysisRepository and SqlPersonaRepository."""

from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from huddle.domain.entities.analysis import MessageAnalysis
from huddle.domain.entities.persona import Persona
from huddle.infrastructure.persistence import (
    Database,
    SqlAnalysisRepository,
    SqlMembershipRepository,
    SqlPersonaRepository,
)


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.initialize()
    yield db
    await db.close()


class TestSqlAnalysisRepository:
    """Tests for the analysis cache."""

    async def test_save_and_get(self, database: Database) -> None:
        repository = SqlAnalysisRepository(database)
        created_at = datetime(2024, 3, 19, 12, 0, tzinfo=timezone.utc)
        analysis = MessageAnalysis(
            message_id="m1",
            summary="Release planning",
            key_points=["ship friday"],
            tone="upbeat",
            action_items=["write notes"],
            patterns=[],
            context_messages=[{"id": "m0", "content": "hi"}],
            similar_messages=[{"id": "m9", "content": "old"}],
            created_at=created_at,
            created_by="u1",
        )

        await repository.save(analysis)
        stored = await repository.get("m1")

        assert stored is not None
        assert stored.summary == "Release planning"
        assert stored.key_points == ["ship friday"]
        assert stored.context_messages == [{"id": "m0", "content": "hi"}]
        assert stored.created_by == "u1"
        assert stored.is_fresh(created_at + timedelta(minutes=5), timedelta(hours=1))

    async def test_save_overwrites_previous(self, database: Database) -> None:
        repository = SqlAnalysisRepository(database)
        await repository.save(MessageAnalysis(message_id="m1", summary="old", created_by="u1"))

        await repository.save(MessageAnalysis(message_id="m1", summary="new", created_by="u2"))
        stored = await repository.get("m1")

        assert stored is not None
        assert stored.summary == "new"
        assert stored.created_by == "u2"

    async def test_get_missing_returns_none(self, database: Database) -> None:
        assert await SqlAnalysisRepository(database).get("missing") is None


class TestSqlPersonaRepository:
    """Tests for the persona store."""

    async def test_save_creates_then_updates(self, database: Database) -> None:
        user = await SqlMembershipRepository(database).create_user("alice")
        repository = SqlPersonaRepository(database)

        first = await repository.save(
            Persona(user_id=user.id, persona_name="Planner", persona_description="v1")
        )
        second = await repository.save(
            Persona(user_id=user.id, persona_name="Organizer", persona_description="v2")
        )
        stored = await repository.get_by_user(user.id)

        assert stored is not None
        assert second.id == first.id
        assert stored.id == first.id
        assert stored.persona_name == "Organizer"
        assert stored.persona_description == "v2"

    async def test_get_missing_returns_none(self, database: Database) -> None:
        assert await SqlPersonaRepository(database).get_by_user("missing") is None
