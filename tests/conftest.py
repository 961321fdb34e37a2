from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from detailer.config import settings
from detailer.database import MemoryBackend
from detailer.main import app
from detailer.repository import Repository


class FakeClock:
    """Drives both the repository's wall clock and the recorder's monotonic clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
        self._seconds = 1000.0

    def __call__(self) -> datetime:
        return self.now

    def seconds(self) -> float:
        return self._seconds

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self._seconds += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def repo(clock):
    """A seeded, in-memory repository on the fake clock."""
    repository = Repository(MemoryBackend(), clock=clock)
    await repository.open()
    yield repository
    await repository.close()


@pytest.fixture
def client(monkeypatch) -> TestClient:
    """A test client for the FastAPI application backed by a fresh in-memory store."""
    monkeypatch.setattr(settings, "storage_backend", "memory")
    with TestClient(app) as c:
        yield c
