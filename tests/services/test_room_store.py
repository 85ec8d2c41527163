"""Unit tests for src/services/room_store.py"""

import threading
from datetime import datetime, timezone

import pytest
from conftest import MockRepository

from src.core.exceptions import RoomNotFoundError
from src.core.models import RoomModel
from src.services.room_store import RoomActor, RoomStore
from src.yahtzee.room import Room

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_room(code: str = "ABCD") -> Room:
    return Room.new_room(code=code, host_name="Alice", session_id="host", now=NOW)


def test_added_room_is_served_from_memory(mock_repository: MockRepository) -> None:
    store = RoomStore(mock_repository)
    room = make_room()
    store.add(room)
    assert store.contains("ABCD")
    assert store.get("ABCD").room is room
    assert store.codes() == ["ABCD"]


def test_unknown_room(mock_repository: MockRepository) -> None:
    store = RoomStore(mock_repository)
    with pytest.raises(RoomNotFoundError):
        store.get("ZZZZ")
    with pytest.raises(RoomNotFoundError):
        with store.locked("ZZZZ"):
            pass


def test_room_is_resumed_from_repository(mock_repository: MockRepository) -> None:
    """A room that is not in memory (e.g. after a restart) gets loaded once and cached."""
    room = make_room()
    mock_repository.create_room(room.to_model())
    store = RoomStore(mock_repository)

    actor = store.get("ABCD")
    assert actor.room == room
    assert actor.room is not room
    assert store.get("ABCD") is actor


def test_locked_gives_exclusive_access(mock_repository: MockRepository) -> None:
    store = RoomStore(mock_repository)
    store.add(make_room())
    with store.locked("ABCD") as actor:
        # the lock is reentrant for the thread holding it
        with store.locked("ABCD") as same_actor:
            assert same_actor is actor


def test_locked_blocks_other_threads(mock_repository: MockRepository) -> None:
    """A second thread only gets the room once the first one is done with it."""
    store = RoomStore(mock_repository)
    store.add(make_room())
    entered = threading.Event()

    def second_command() -> None:
        with store.locked("ABCD"):
            entered.set()

    with store.locked("ABCD"):
        worker = threading.Thread(target=second_command)
        worker.start()
        assert not entered.wait(timeout=0.2)
    worker.join(timeout=5)
    assert entered.is_set()


def test_locked_room_does_not_block_other_rooms(mock_repository: MockRepository) -> None:
    store = RoomStore(mock_repository)
    store.add(make_room("AAAA"))
    store.add(make_room("BBBB"))
    entered = threading.Event()

    def other_room_command() -> None:
        with store.locked("BBBB"):
            entered.set()

    with store.locked("AAAA"):
        worker = threading.Thread(target=other_room_command)
        worker.start()
        assert entered.wait(timeout=5)
    worker.join(timeout=5)


class SlowRepository(MockRepository):
    """get_room waits until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.loading = threading.Event()
        self.release = threading.Event()

    def get_room(self, code: str) -> RoomModel | None:
        self.loading.set()
        self.release.wait(timeout=5)
        return super().get_room(code)


def test_loading_a_room_does_not_block_the_store() -> None:
    repository = SlowRepository()
    repository.create_room(make_room("AAAA").to_model())
    store = RoomStore(repository)
    store.add(make_room("BBBB"))
    loaded: list[RoomActor] = []

    worker = threading.Thread(target=lambda: loaded.append(store.get("AAAA")))
    worker.start()
    assert repository.loading.wait(timeout=5)
    # while AAAA is read from the database, rooms in memory are still served
    assert store.get("BBBB").room.code == "BBBB"
    assert store.codes() == ["BBBB"]

    repository.release.set()
    worker.join(timeout=5)
    assert loaded[0] is store.get("AAAA")


def test_removed_room_cannot_be_locked(mock_repository: MockRepository) -> None:
    store = RoomStore(mock_repository)
    store.add(make_room())
    store.remove("ABCD")
    assert not store.contains("ABCD")
    with pytest.raises(RoomNotFoundError):
        with store.locked("ABCD"):
            pass


def test_rooms_have_their_own_lock(mock_repository: MockRepository) -> None:
    store = RoomStore(mock_repository)
    first = store.add(make_room("AAAA"))
    second = store.add(make_room("BBBB"))
    assert first.lock is not second.lock
