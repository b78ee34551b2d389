"""Test configuration."""
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Generator

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATA_DIR", str(Path(tempfile.gettempdir()) / "lingolearn-test-data"))
os.environ["STUDY_TIMEZONE"] = "UTC"
os.environ["DAY_START_HOUR"] = "0"
os.environ["STREAK_AUTO_APPLY_FREEZE"] = "false"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import Session, sessionmaker

from lingolearn.clock import FixedClock
from lingolearn.config import ensure_directories
from lingolearn.models.base import create_session_factory
from lingolearn.models.models import WordRecord
from lingolearn.services.learning_service import LearningService

fake = Faker()

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def session_factory() -> sessionmaker:
    """Fresh in-memory database for each test."""
    return create_session_factory("sqlite://")


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock() -> FixedClock:
    """Clock pinned to a Monday noon UTC."""
    return FixedClock(NOW)


@pytest.fixture
def learning_service(db: Session, clock: FixedClock) -> LearningService:
    """Create a learning service instance."""
    return LearningService(db, clock=clock)


@pytest.fixture
def make_word(db: Session) -> Callable[..., WordRecord]:
    """Factory for persisted words; keyword arguments override learning state."""

    def _make_word(**overrides) -> WordRecord:
        overrides.setdefault("english", fake.unique.word())
        overrides.setdefault("chinese", fake.word())
        word = WordRecord(**overrides)
        db.add(word)
        db.commit()
        db.refresh(word)
        return word

    return _make_word
