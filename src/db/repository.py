"""Protocol repository (implemented with SQLAlchemy in sql_repository.py, with a dictionary in the tests)"""

from datetime import datetime
from typing import Protocol

from src.core.models import GameScoreModel, RoomModel


class RoomRepository(Protocol):
    """Persistence layer orchestration"""

    def get_room(self, code: str) -> RoomModel | None:
        """Get room (with its players) by code, if record exists."""
        ...

    def room_exists(self, code: str) -> bool:
        """Used to avoid handing out the same room code twice."""
        ...

    def create_room(self, room: RoomModel) -> RoomModel:
        """Store a new room with its players."""
        ...

    def update_room(self, room: RoomModel) -> RoomModel | None:
        """Overwrite room fields, players (added / removed / changed) and the game state snapshot."""
        ...

    def delete_room(self, code: str) -> RoomModel | None:
        """Remove a room and everything attached to it."""
        ...

    def save_final_scores(self, code: str, scores: list[GameScoreModel]) -> None:
        """Write the final score of every player. Writing twice for the same room is a no-op."""
        ...

    def get_final_scores(self, code: str) -> list[GameScoreModel]:
        """Final scores ordered by player index (empty until the room finished)."""
        ...

    def delete_expired(self, now: datetime) -> list[str]:
        """Remove rooms whose expiry passed. Returns their codes."""
        ...
