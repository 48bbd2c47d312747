"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from memograph.config import Settings
from memograph.models import Category, Note, Relation
from memograph.storage.neo4j_client import Neo4jClient

OWNER = "test-owner"
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def make_note(
    note_id: str,
    title: str = "",
    content: str | None = None,
    category_id: str = "cat-work",
    category_name: str | None = "Work",
    importance: int = 1,
    owner_id: str = OWNER,
    age: int = 0,
) -> Note:
    """Build a valid note; ``age`` shifts created_at back by that many hours."""
    return Note(
        id=note_id,
        title=title,
        content=content if content is not None else f"Content of {note_id}",
        category_id=category_id,
        category_name=category_name,
        importance=importance,
        owner_id=owner_id,
        created_at=BASE_TIME - timedelta(hours=age),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Test settings: restarts apply immediately."""
    return Settings(
        neo4j_uri="bolt://localhost:7687",
        neo4j_user="neo4j",
        neo4j_password="test_password",
        owner_id=OWNER,
        restart_debounce=0.0,
        tick_interval=0.001,
    )


@pytest.fixture
def sample_categories() -> list[Category]:
    return [
        Category(id="cat-ideas", name="Ideas", owner_id=OWNER),
        Category(id="cat-work", name="Work", owner_id=OWNER),
    ]


@pytest.fixture
def sample_notes() -> list[Note]:
    """Three work notes and one idea, newest first."""
    return [
        make_note("n1", title="Docker setup", content="Compose file for the stack", importance=3),
        make_note("n2", title="Meeting", content="Discussed Docker rollout", age=1),
        make_note("n3", title="Groceries", content="Milk, eggs", age=2),
        make_note(
            "n4",
            title="Side project",
            content="Graph viewer",
            category_id="cat-ideas",
            category_name="Ideas",
            importance=5,
            age=3,
        ),
    ]


@pytest.fixture
def sample_relations() -> list[Relation]:
    """n1-n2 stored in both directions, n2-n4 stored one-sided."""
    return [
        Relation("n1", "n2"),
        Relation("n2", "n1"),
        Relation("n2", "n4"),
    ]


@pytest.fixture
def mock_repository(sample_categories, sample_notes, sample_relations) -> MagicMock:
    """Mock Neo4j client serving the sample data."""
    repo = MagicMock(spec=Neo4jClient)
    repo.list_categories = AsyncMock(return_value=sample_categories)
    repo.list_notes = AsyncMock(return_value=sample_notes)
    repo.list_relations = AsyncMock(return_value=sample_relations)
    repo.create_note = AsyncMock()
    repo.update_note = AsyncMock(return_value=None)
    repo.delete_note = AsyncMock(return_value=None)
    repo.replace_relations = AsyncMock(return_value=None)
    repo.execute_query = AsyncMock(return_value=[{"n": 1}])
    return repo


@pytest.fixture
def note_factory():
    """The ``make_note`` builder, for tests that need custom notes."""
    return make_note
