"""
Turn timeout supervision.

When the player whose turn it is is disconnected, a cancellable timer starts. When it fires, the room service
re-checks (under the room lock) that the same turn is still on and the player is still gone, and skips the turn.
There is at most one pending timer per room, and this supervisor is the only one starting them.
"""

import threading
from typing import Callable, Protocol

import structlog

logger = structlog.get_logger()

# (room_code, turn_id) -> None
TimeoutCallback = Callable[[str, int], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback once after delay seconds, unless cancelled first."""
        ...


class ThreadingScheduler:
    """Scheduler backed by threading.Timer (one daemon thread per pending timer)."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


class _PendingTimer:
    def __init__(self, turn_id: int) -> None:
        self.turn_id = turn_id
        self.handle: TimerHandle


class TurnTimeoutSupervisor:
    def __init__(
        self, timeout_seconds: float, scheduler: Scheduler, on_timeout: TimeoutCallback
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.scheduler = scheduler
        self.on_timeout = on_timeout
        self._timers: dict[str, _PendingTimer] = {}
        self._lock = threading.Lock()

    def sync(self, room_code: str, turn_id: int, needs_timer: bool) -> None:
        """
        Called after every change to a running room.
        ---
        Keeps a timer for the current turn when its player is disconnected, cancels it otherwise
        (reconnect, or the turn moved on for any other reason).
        """
        with self._lock:
            pending = self._timers.get(room_code)
            if pending is not None and pending.turn_id == turn_id and needs_timer:
                return
            if pending is not None:
                pending.handle.cancel()
                del self._timers[room_code]
                logger.debug("turn_timer_cancelled", room_code=room_code, turn_id=pending.turn_id)
            if needs_timer:
                timer = _PendingTimer(turn_id)
                timer.handle = self.scheduler.schedule(
                    self.timeout_seconds, lambda: self._fire(room_code, timer)
                )
                self._timers[room_code] = timer
                logger.debug(
                    "turn_timer_started",
                    room_code=room_code,
                    turn_id=turn_id,
                    timeout=self.timeout_seconds,
                )

    def cancel(self, room_code: str) -> None:
        with self._lock:
            pending = self._timers.pop(room_code, None)
        if pending is not None:
            pending.handle.cancel()

    def pending_turn(self, room_code: str) -> int | None:
        """Turn id the room has a pending timer for (None without a timer)."""
        with self._lock:
            pending = self._timers.get(room_code)
        return pending.turn_id if pending else None

    def _fire(self, room_code: str, timer: _PendingTimer) -> None:
        with self._lock:
            # a timer replaced or cancelled in the meantime is stale, even for the same turn
            if self._timers.get(room_code) is not timer:
                return
            del self._timers[room_code]
        logger.info("turn_timer_expired", room_code=room_code, turn_id=timer.turn_id)
        self.on_timeout(room_code, timer.turn_id)
