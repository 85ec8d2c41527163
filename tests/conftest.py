"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

import random
from datetime import datetime, timezone
from typing import Callable, Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.core.exceptions import PersistenceError
from src.core.models import GameScoreModel, RoomModel
from src.db.schema import Base
from src.yahtzee.dice import DiceRoller

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    """Sessions on a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings() -> Settings:
    """Defaults, without reading the environment / a .env file of the machine running the tests."""
    return Settings(_env_file=None, database_url=DATABASE_URL)


@pytest.fixture
def roller() -> DiceRoller:
    """Seeded, so that a test run is reproducible."""
    return DiceRoller(random.Random(1234))


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


# --- MOCK DEPENDENCIES ----
class ScriptedRandom(random.Random):
    """Random source returning the given die faces in order (then repeating them)."""

    def __init__(self, faces: list[int]) -> None:
        super().__init__(0)
        self.faces = faces
        self.position = 0

    def randint(self, a: int, b: int) -> int:
        face = self.faces[self.position % len(self.faces)]
        self.position += 1
        return face


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Timers that only fire when the test says so."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def schedule(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> None:
        """Let every pending timer expire (as if the full timeout passed)."""
        for timer in self.pending:
            timer.fired = True
            timer.callback()


class MockRepository:
    """Mock the RoomRepository using dictionaries of models."""

    def __init__(self) -> None:
        self._rooms: dict[str, RoomModel] = {}
        self._scores: dict[str, list[GameScoreModel]] = {}
        self.score_writes = 0
        # number of upcoming save_final_scores calls that fail
        self.failing_score_writes = 0

    def get_room(self, code: str) -> RoomModel | None:
        return self._rooms.get(code)

    def room_exists(self, code: str) -> bool:
        return code in self._rooms

    def create_room(self, room: RoomModel) -> RoomModel:
        self._rooms[room.code] = room
        return room

    def update_room(self, room: RoomModel) -> RoomModel | None:
        if room.code not in self._rooms:
            return None
        self._rooms[room.code] = room
        return room

    def delete_room(self, code: str) -> RoomModel | None:
        self._scores.pop(code, None)
        return self._rooms.pop(code, None)

    def save_final_scores(self, code: str, scores: list[GameScoreModel]) -> None:
        self.score_writes += 1
        if self.failing_score_writes > 0:
            self.failing_score_writes -= 1
            raise PersistenceError("database is gone")
        self._scores.setdefault(code, list(scores))

    def get_final_scores(self, code: str) -> list[GameScoreModel]:
        return list(self._scores.get(code, []))

    def delete_expired(self, now: datetime) -> list[str]:
        expired = [code for code, room in self._rooms.items() if room.expires_at <= now]
        for code in expired:
            self.delete_room(code)
        return expired

    def clear(self) -> None:
        """Clear the repository (useful in between tests)"""
        self._rooms.clear()
        self._scores.clear()


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()
