"""
Events sent towards clients.

Events are advisory: the authoritative state stays in the room. Every event carries the room version after the
change it describes, so a client can drop duplicates / late arrivals and reconcile with a poll of the room state.
"""

import threading
from collections import defaultdict, deque
from typing import Any, Callable, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.core.shared_types import EventType


class RoomEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: EventType
    room_code: str
    version: int
    payload: dict[str, Any]


EventListener = Callable[[RoomEvent], None]

DEFAULT_EVENT_LOG_SIZE = 500


class EventBroadcaster(Protocol):
    """Whatever transport delivers events to the clients of a room (websocket, realtime channel, ...)"""

    def publish(self, event: RoomEvent) -> None:
        """Hand an event over for delivery. Called in order, while the room is locked."""
        ...

    def forget_room(self, room_code: str) -> None:
        """Drop everything kept for a room that no longer exists."""
        ...


class InMemoryBroadcaster:
    """
    Keeps a log of the events per room and forwards them to in-process listeners.
    Only the latest max_events of a room are kept; a client that fell further behind polls the room state instead.
    """

    def __init__(self, max_events: int = DEFAULT_EVENT_LOG_SIZE) -> None:
        self._events: dict[str, deque[RoomEvent]] = defaultdict(lambda: deque(maxlen=max_events))
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, event: RoomEvent) -> None:
        with self._lock:
            self._events[event.room_code].append(event)
            listeners = list(self._listeners[event.room_code])
        for listener in listeners:
            listener(event)

    def subscribe(self, room_code: str, listener: EventListener) -> None:
        with self._lock:
            self._listeners[room_code].append(listener)

    def unsubscribe(self, room_code: str, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners[room_code]:
                self._listeners[room_code].remove(listener)

    def events_since(self, room_code: str, version: int = 0) -> list[RoomEvent]:
        """Events with a version strictly above the given one (polling fallback)."""
        with self._lock:
            return [e for e in self._events.get(room_code, []) if e.version > version]

    def forget_room(self, room_code: str) -> None:
        with self._lock:
            self._events.pop(room_code, None)
            self._listeners.pop(room_code, None)
