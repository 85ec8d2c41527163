"""
The Room is the entrypoint into the domain layer for the service layer.
It owns the membership of a match (players, host, capacity) and its lifecycle (lobby -> playing -> finished),
and hands the actual play over to the GameState once the game has started.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Self
from uuid import uuid4

from src.core.exceptions import (
    GameNotInProgressError,
    GameStartedError,
    InternalError,
    InvalidRequestError,
    NotEnoughPlayersError,
    NotHostError,
    NotInGameError,
    NotYourTurnError,
    RoomFullError,
)
from src.core.models import GameScoreModel, PlayerModel, RoomModel
from src.core.shared_types import Category, RoomStatus
from src.yahtzee.categories import Scorecard, empty_scorecard, scorecard_to_data
from src.yahtzee.dice import DiceRoller
from src.yahtzee.game import GameState, TurnResult
from src.yahtzee.scoring import ScorecardTotals, totals

MIN_PLAYERS = 2
MAX_PLAYERS = 4
MAX_NAME_LENGTH = 20
DEFAULT_BOT_NAME = "Bot"

# Status can only move forward
ALLOWED_TRANSITIONS: dict[RoomStatus, set[RoomStatus]] = {
    RoomStatus.LOBBY: {RoomStatus.PLAYING},
    RoomStatus.PLAYING: {RoomStatus.FINISHED},
    RoomStatus.FINISHED: set(),
}


def clean_display_name(name: str) -> str:
    """Trimmed name of 1-20 characters."""
    cleaned = name.strip()
    if not 0 < len(cleaned) <= MAX_NAME_LENGTH:
        raise InvalidRequestError(
            f"Name must be 1-{MAX_NAME_LENGTH} characters.", code="INVALID_NAME"
        )
    return cleaned


@dataclass
class Player:
    id: str
    session_id: str
    display_name: str
    player_index: int
    is_bot: bool = False
    is_connected: bool = True


@dataclass
class FinalScore:
    player_id: str
    player_index: int
    totals: ScorecardTotals
    scorecard: Scorecard
    is_winner: bool = False

    def to_model(self) -> GameScoreModel:
        return GameScoreModel(
            player_id=self.player_id,
            player_index=self.player_index,
            upper_total=self.totals.upper_total,
            upper_bonus=self.totals.upper_bonus,
            lower_total=self.totals.lower_total,
            grand_total=self.totals.grand_total,
            is_winner=self.is_winner,
            scorecard=scorecard_to_data(self.scorecard),
        )


@dataclass
class Room:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    code: str
    host_session_id: str
    status: RoomStatus
    max_players: int
    created_at: datetime
    expires_at: datetime
    players: list[Player] = field(default_factory=list)
    current_turn_player_index: int = 0
    current_round: int = 1
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    game: Optional[GameState] = None
    version: int = 0

    @classmethod
    def new_room(
        cls,
        code: str,
        host_name: str,
        session_id: str,
        now: datetime,
        max_players: int = MAX_PLAYERS,
        ttl: timedelta = timedelta(hours=24),
    ) -> Self:
        """Room in the lobby with the creator seated at index 0 (and host)."""
        room = cls(
            code=code,
            host_session_id=session_id,
            status=RoomStatus.LOBBY,
            max_players=min(max(max_players, MIN_PLAYERS), MAX_PLAYERS),
            created_at=now,
            expires_at=now + ttl,
        )
        room.players.append(
            Player(
                id=str(uuid4()),
                session_id=session_id,
                display_name=clean_display_name(host_name),
                player_index=0,
            )
        )
        return room

    @classmethod
    def from_model(cls, model: RoomModel) -> Self:
        """Define how to construct a Room from the information the Service layer actually has"""
        if model.status not in RoomStatus._value2member_map_:
            raise InternalError(f"Invalid room status: {model.status!r}")

        players = [
            Player(
                id=p.id,
                session_id=p.session_id,
                display_name=p.display_name,
                player_index=p.player_index,
                is_bot=p.is_bot,
                is_connected=p.is_connected,
            )
            for p in model.players
        ]
        game = GameState.from_dict(model.game_state) if model.game_state else None
        return cls(
            code=model.code,
            host_session_id=model.host_session_id,
            status=RoomStatus(model.status),
            max_players=model.max_players,
            created_at=model.created_at,
            expires_at=model.expires_at,
            players=sorted(players, key=lambda p: p.player_index),
            current_turn_player_index=model.current_turn_player_index,
            current_round=model.current_round,
            started_at=model.started_at,
            finished_at=model.finished_at,
            game=game,
            version=model.version,
        )

    def to_model(self) -> RoomModel:
        """Encode back into a format the Service layer uses"""
        return RoomModel(
            code=self.code,
            host_session_id=self.host_session_id,
            status=self.status.value,
            max_players=self.max_players,
            current_turn_player_index=self.current_turn_player_index,
            current_round=self.current_round,
            created_at=self.created_at,
            expires_at=self.expires_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            version=self.version,
            players=[
                PlayerModel(
                    id=p.id,
                    session_id=p.session_id,
                    display_name=p.display_name,
                    player_index=p.player_index,
                    is_bot=p.is_bot,
                    is_connected=p.is_connected,
                )
                for p in self.players
            ],
            game_state=self.game.to_dict() if self.game else None,
        )

    # --- lookups ---
    @property
    def human_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_bot]

    @property
    def turn_id(self) -> Optional[int]:
        return self.game.turn_id if self.game else None

    def get_player(self, session_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.session_id == session_id), None)

    def require_player(self, session_id: str) -> Player:
        player = self.get_player(session_id)
        if player is None:
            raise NotInGameError("You are not in this room.")
        return player

    def player_at(self, index: int) -> Player:
        return next(p for p in self.players if p.player_index == index)

    def current_player(self) -> Player:
        return self.player_at(self.current_turn_player_index)

    def is_host(self, session_id: str) -> bool:
        return self.host_session_id == session_id

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def bump_version(self) -> int:
        """Monotonic counter: clients keep the state with the highest version they have seen."""
        self.version += 1
        return self.version

    # --- lobby ---
    def join(self, name: str, session_id: str) -> tuple[Player, bool]:
        """
        Seat a new player, or return the existing seat when the session is already known.
        ---
        Returns the player and whether this was a rejoin.
        """
        existing = self.get_player(session_id)
        if existing is not None:
            existing.is_connected = True
            return existing, True

        display_name = clean_display_name(name)
        self._assert_lobby()
        self._assert_capacity()

        player = Player(
            id=str(uuid4()),
            session_id=session_id,
            display_name=self._unique_name(display_name),
            player_index=self._lowest_free_index(),
        )
        self._seat(player)
        return player, False

    def add_bot(self, requester_session_id: str, name: str = DEFAULT_BOT_NAME) -> Player:
        self._assert_host(requester_session_id)
        self._assert_lobby()
        self._assert_capacity()

        display_name = name.strip()[:MAX_NAME_LENGTH] or DEFAULT_BOT_NAME
        bot = Player(
            id=str(uuid4()),
            session_id=f"bot-{uuid4()}",
            display_name=self._unique_name(display_name),
            player_index=self._lowest_free_index(),
            is_bot=True,
        )
        self._seat(bot)
        return bot

    def leave(self, session_id: str) -> Player:
        """Leave the lobby. The host role moves to the next human (or anyone left) when the host leaves."""
        self._assert_lobby()
        player = self.require_player(session_id)
        self.players.remove(player)

        if self.players and self.is_host(session_id):
            next_host = next(iter(self.human_players), self.players[0])
            self.host_session_id = next_host.session_id
        return player

    def start(self, session_id: str, now: datetime) -> list[int]:
        """Fix the turn order (ascending player index) and hand out empty scorecards."""
        self._assert_host(session_id)
        self._assert_lobby()
        if len(self.players) < MIN_PLAYERS:
            raise NotEnoughPlayersError(f"Need at least {MIN_PLAYERS} players.")

        # players that left the lobby leave gaps, indices must be 0..n-1 for the turn arithmetic
        for index, player in enumerate(self.players):
            player.player_index = index

        self.game = GameState.new_game(len(self.players))
        self._change_status(RoomStatus.PLAYING)
        self.started_at = now
        self._sync_turn()
        return [p.player_index for p in self.players]

    # --- play ---
    def roll(self, session_id: str, roller: DiceRoller, held: Optional[list[bool]] = None) -> list[int]:
        game = self._game_for_turn_of(session_id)
        return game.request_roll(roller, held)

    def score(self, session_id: str, category: Category) -> TurnResult:
        game = self._game_for_turn_of(session_id)
        result = game.request_score(category)
        self._sync_turn()
        return result

    def skip_current_turn(self) -> TurnResult:
        game = self._running_game()
        result = game.skip_turn()
        self._sync_turn()
        return result

    @property
    def bot_to_move(self) -> bool:
        """A running game where a bot is up."""
        return (
            self.status == RoomStatus.PLAYING
            and self.game is not None
            and not self.game.finished
            and self.current_player().is_bot
        )

    def play_bot_turn(self, roller: DiceRoller) -> TurnResult:
        game = self._running_game()
        if not self.current_player().is_bot:
            raise NotYourTurnError("The current player is not a bot.")
        result = game.play_bot_turn(roller)
        self._sync_turn()
        return result

    def available_categories(self) -> dict[Category, int]:
        return self._running_game().available_categories()

    def set_connected(self, session_id: str, connected: bool) -> Player:
        player = self.require_player(session_id)
        player.is_connected = connected
        return player

    @property
    def game_finished(self) -> bool:
        return self.game is not None and self.game.finished

    def is_solo_against_bots(self, session_id: str) -> bool:
        humans = self.human_players
        return len(humans) == 1 and humans[0].session_id == session_id

    # --- end of game ---
    def final_scores(self) -> list[FinalScore]:
        """Totals per player (unfilled categories count 0). Highest grand total wins, the lowest index wins a tie."""
        scorecards = self.game.scorecards if self.game else {}
        results = [
            FinalScore(
                player_id=p.id,
                player_index=p.player_index,
                totals=totals(scorecards.get(p.player_index, empty_scorecard())),
                scorecard=scorecards.get(p.player_index, empty_scorecard()),
            )
            for p in self.players
        ]
        if results:
            winner = max(results, key=lambda r: (r.totals.grand_total, -r.player_index))
            winner.is_winner = True
        return results

    def finish(self, now: datetime) -> list[FinalScore]:
        """Compute the final scores and close the room. The ephemeral game state is dropped."""
        if self.status != RoomStatus.PLAYING:
            raise GameNotInProgressError(f"Game is not in progress. status: {self.status}")
        scores = self.final_scores()
        self._change_status(RoomStatus.FINISHED)
        self.finished_at = now
        self.game = None
        return scores

    # -- PRIVATE HELPERS ---
    def _seat(self, player: Player) -> None:
        self.players.append(player)
        self.players.sort(key=lambda p: p.player_index)

    def _unique_name(self, name: str) -> str:
        """Append a counter (starting at 2) when the name is taken."""
        taken = {p.display_name for p in self.players}
        if name not in taken:
            return name
        counter = 2
        while f"{name} {counter}" in taken:
            counter += 1
        return f"{name} {counter}"

    def _lowest_free_index(self) -> int:
        used = {p.player_index for p in self.players}
        index = 0
        while index in used:
            index += 1
        return index

    def _sync_turn(self) -> None:
        if self.game is not None:
            self.current_turn_player_index = self.game.current_player_index
            self.current_round = self.game.current_round

    def _change_status(self, new_status: RoomStatus) -> None:
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InternalError(f"Room cannot go from {self.status} to {new_status}.")
        self.status = new_status

    def _assert_lobby(self) -> None:
        if self.status != RoomStatus.LOBBY:
            raise GameStartedError("Game has already started.")

    def _assert_capacity(self) -> None:
        if len(self.players) >= self.max_players:
            raise RoomFullError(f"Room already has {self.max_players} players.")

    def _assert_host(self, session_id: str) -> None:
        if not self.is_host(session_id):
            raise NotHostError("Only the host can do this.")

    def _running_game(self) -> GameState:
        if self.status != RoomStatus.PLAYING or self.game is None or self.game.finished:
            raise GameNotInProgressError(f"Game is not in progress. status: {self.status}")
        return self.game

    def _game_for_turn_of(self, session_id: str) -> GameState:
        """You must wait for your turn before rolling / scoring."""
        game = self._running_game()
        player = self.get_player(session_id)
        if player is None or player.player_index != game.current_player_index:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for player {game.current_player_index}."
            )
        return game
