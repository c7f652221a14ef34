"""Shared test fixtures for the prediction ledger."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ledger import DocumentStore, PredictionStore, RepredictionIndexer, SubjectKey  # noqa: E402
from observability import Metrics  # noqa: E402


class FakeClock:
    """Manually advanced clock so created_at ordering is deterministic."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 8, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def documents(db_path, clock):
    return DocumentStore(db_path, clock=clock)


@pytest.fixture
def store(db_path, clock):
    return PredictionStore(db_path, clock=clock)


@pytest.fixture
def indexer(store, documents):
    return RepredictionIndexer(store, documents)


@pytest.fixture
def subject():
    return SubjectKey("FC_Bayern_München_Borussia_Dortmund_1756483200", "gpt-4o", "pes-squad")


@pytest.fixture
def collector():
    return Metrics()
