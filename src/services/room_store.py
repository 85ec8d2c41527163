"""
In-memory store of the rooms that are being played: room code -> RoomActor.

Every command on a room runs while holding that room's lock, so commands on one room are applied one at a time,
while different rooms never wait for each other. The store's own lock only guards the dictionary.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

import structlog

from src.core.exceptions import RoomNotFoundError
from src.core.models import GameScoreModel
from src.db.repository import RoomRepository
from src.yahtzee.room import Room

logger = structlog.get_logger()


@dataclass
class RoomActor:
    room: Room
    lock: threading.RLock = field(default_factory=threading.RLock)
    # final scores that could not be written yet
    pending_scores: Optional[list[GameScoreModel]] = None


class RoomStore:
    def __init__(self, repository: RoomRepository) -> None:
        self.repo = repository
        self._actors: dict[str, RoomActor] = {}
        self._lock = threading.Lock()

    def add(self, room: Room) -> RoomActor:
        actor = RoomActor(room)
        with self._lock:
            self._actors[room.code] = actor
        return actor

    def contains(self, code: str) -> bool:
        with self._lock:
            return code in self._actors

    def codes(self) -> list[str]:
        with self._lock:
            return list(self._actors)

    def remove(self, code: str) -> Optional[RoomActor]:
        with self._lock:
            return self._actors.pop(code, None)

    def get(self, code: str) -> RoomActor:
        """Cached actor, or the room loaded (resumed) from the repository."""
        with self._lock:
            actor = self._actors.get(code)
        if actor is not None:
            return actor

        # loaded outside the store lock; when two threads load the same room, the first insert wins
        model = self.repo.get_room(code)
        if model is None:
            raise RoomNotFoundError(f"Room {code!r} not found.")
        loaded = RoomActor(Room.from_model(model))
        with self._lock:
            actor = self._actors.setdefault(code, loaded)
        if actor is loaded:
            logger.info("room_resumed", room_code=code, status=actor.room.status)
        return actor

    @contextmanager
    def locked(self, code: str) -> Iterator[RoomActor]:
        """Exclusive access to one room."""
        actor = self.get(code)
        with actor.lock:
            # removed while we were waiting for the lock
            with self._lock:
                if self._actors.get(code) is not actor:
                    raise RoomNotFoundError(f"Room {code!r} not found.")
            yield actor
