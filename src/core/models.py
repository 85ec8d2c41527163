"""
Boundary layer data model(s).

These objects are used to communicate between the Service and the persistence layer.
The domain layer (src/yahtzee/room.py) converts to/from them, the repository stores them.
(Decouples the SQLAlchemy tables from the domain objects)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

# Type aliases to make the models easier to read
ScorecardData = dict[str, Optional[int]]
GameStateData = dict[str, Any]


@dataclass
class PlayerModel:
    """Transport-safe representation of a player seated in a room."""

    id: str
    session_id: str
    display_name: str
    player_index: int
    is_bot: bool = False
    is_connected: bool = True


@dataclass
class RoomModel:
    """Room row + its players + the snapshot of the ephemeral game state (None outside of a running game)."""

    code: str
    host_session_id: str
    status: str
    max_players: int
    current_turn_player_index: int
    current_round: int
    created_at: datetime
    expires_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    version: int = 0
    players: list[PlayerModel] = field(default_factory=list)
    game_state: Optional[GameStateData] = None


@dataclass
class GameScoreModel:
    """Final result of one player. Written once when the room finishes."""

    player_id: str
    player_index: int
    upper_total: int
    upper_bonus: int
    lower_total: int
    grand_total: int
    is_winner: bool
    scorecard: ScorecardData
