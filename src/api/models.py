"""Requests and Response models"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import Category, QuitAction, RoomStatus
from src.yahtzee.categories import DICE_COUNT, is_category
from src.yahtzee.room import DEFAULT_BOT_NAME, clean_display_name

ScorecardView = dict[Category, Optional[int]]


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoomRequest(ApiModel):
    room_code: str

    @field_validator("room_code")
    @classmethod
    def normalize_room_code(cls, value: str) -> str:
        return value.strip().upper()


class SessionRequest(RoomRequest):
    session_id: str


# --- REQUEST MODELS ---
class CreateRoomRequest(ApiModel):
    host_name: str
    max_players: Optional[int] = None

    @field_validator("host_name")
    @classmethod
    def validate_host_name(cls, value: str) -> str:
        return clean_display_name(value)


class JoinRoomRequest(RoomRequest):
    player_name: str
    session_id: Optional[str] = None

    @field_validator("player_name")
    @classmethod
    def validate_player_name(cls, value: str) -> str:
        return clean_display_name(value)


class AddBotRequest(SessionRequest):
    bot_name: str = DEFAULT_BOT_NAME


class StartGameRequest(SessionRequest):
    pass


class RollRequest(SessionRequest):
    held: list[bool] = Field(default_factory=lambda: [False] * DICE_COUNT)

    @field_validator("held")
    @classmethod
    def validate_held(cls, value: list[bool]) -> list[bool]:
        if len(value) != DICE_COUNT:
            raise InvalidRequestError(
                f"Held mask must contain {DICE_COUNT} flags, got {len(value)}.",
                code="INVALID_HELD",
            )
        return value


class ScoreRequest(SessionRequest):
    category: Category

    @field_validator("category", mode="before")
    @classmethod
    def validate_category(cls, value: object) -> object:
        if not isinstance(value, str) or not is_category(value):
            raise InvalidRequestError(
                f"Invalid scoring category: {value!r}", code="INVALID_CATEGORY"
            )
        return value


class QuitRequest(SessionRequest):
    pass


class SkipRequest(SessionRequest):
    pass


class LeaveRequest(SessionRequest):
    pass


class PresenceRequest(SessionRequest):
    connected: bool


class GetRoomRequest(RoomRequest):
    pass


# --- RESPONSE MODELS ---
class PlayerInfo(ApiModel):
    id: str
    display_name: str
    player_index: int
    is_bot: bool
    is_connected: bool


class PlayerScore(ApiModel):
    player_index: int
    grand_total: int


class TurnSummary(ApiModel):
    """One turn played by a bot (or skipped by the server), to be replayed by the client."""

    player_index: int
    rolls: list[list[int]]
    dice: list[int]
    roll_count: int
    category: Category
    score: int
    skipped: bool = False


class CreateRoomResponse(ApiModel):
    room_code: str
    session_id: str
    player_index: int


class JoinRoomResponse(ApiModel):
    room_code: str
    player_id: str
    session_id: str
    player_index: int
    rejoined: bool
    players: list[PlayerInfo]


class AddBotResponse(ApiModel):
    player_id: str
    player_index: int
    display_name: str
    is_bot: bool = True


class StartGameResponse(ApiModel):
    status: RoomStatus
    turn_order: list[int]
    first_player: int
    bot_turns: list[TurnSummary]
    game_finished: bool = False


class RollResponse(ApiModel):
    dice: list[int]
    roll_count: int
    available_categories: dict[Category, int]


class TurnOutcome(ApiModel):
    """Where the game stands after a turn (and any bot turns it triggered)."""

    next_player_index: int
    round: int
    game_finished: bool
    bot_turns: list[TurnSummary]
    scores: Optional[list[PlayerScore]] = None
    winner: Optional[int] = None


class ScoreResponse(TurnOutcome):
    score: int


class SkipResponse(TurnOutcome):
    category: Category
    score: int


class QuitResponse(ApiModel):
    action: QuitAction
    scores: Optional[list[PlayerScore]] = None
    winner: Optional[int] = None


class LeaveResponse(ApiModel):
    left: bool
    room_deleted: bool


class PresenceResponse(ApiModel):
    player_index: int
    is_connected: bool


class GameStateView(ApiModel):
    dice: list[int]
    held: list[bool]
    roll_count: int
    scorecards: dict[int, ScorecardView]


class RoomStateResponse(ApiModel):
    room_code: str
    status: RoomStatus
    max_players: int
    host_player_index: Optional[int]
    current_turn_player_index: int
    current_round: int
    version: int
    players: list[PlayerInfo]
    game_state: Optional[GameStateView] = None
    scores: Optional[list[PlayerScore]] = None
    winner: Optional[int] = None
