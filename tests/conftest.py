"""Global fixtures: temp DB, fake verifier, wired services."""

import tempfile
from pathlib import Path

import pytest

from fakes import FakeVerifier
from flowgate.core.engine import Engine
from flowgate.core.ranking_config import ConfigStore
from flowgate.core.services import (
    ItemService,
    ProjectService,
    ReviewService,
    TaskService,
    TransitionService,
)
from flowgate.database.sqlite import SqliteDB
from flowgate.models import Item


@pytest.fixture
def temp_db_path() -> Path:
    """Temporary SQLite path (cleaned up after test)."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = Path(f.name)
    yield path
    if path.exists():
        path.unlink(missing_ok=True)


@pytest.fixture
def db(temp_db_path: Path) -> SqliteDB:
    """Initialized SqliteDB with temp path."""
    d = SqliteDB(temp_db_path)
    d.init_db()
    return d


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def transitions(db: SqliteDB, verifier: FakeVerifier) -> TransitionService:
    return TransitionService(db, verifier)


@pytest.fixture
def projects(db: SqliteDB, verifier: FakeVerifier) -> ProjectService:
    return ProjectService(db, verifier)


@pytest.fixture
def items(db: SqliteDB, transitions: TransitionService, projects: ProjectService) -> ItemService:
    return ItemService(db, transitions, projects)


@pytest.fixture
def tasks(db: SqliteDB, transitions: TransitionService) -> TaskService:
    return TaskService(db, transitions)


@pytest.fixture
def reviews(db: SqliteDB, projects: ProjectService) -> ReviewService:
    return ReviewService(db, projects)


@pytest.fixture
def engine(temp_db_path: Path, tmp_path: Path, verifier: FakeVerifier) -> Engine:
    """Engine with temp DB, fake verifier and default ranking config."""
    return Engine(
        db_path=temp_db_path,
        verifier=verifier,
        ranking_config=ConfigStore(tmp_path / "missing-ranking.json"),
    )


@pytest.fixture
def inbox_item(items: ItemService) -> Item:
    """Single captured inbox item."""
    return items.capture("Quarterly budget", body="numbers from finance")
