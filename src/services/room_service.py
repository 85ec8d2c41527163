"""
Orchestration of communication from API router to the domain and persistence layers (and the reverse direction).

Every command runs while holding the lock of its room (see room_store.py). Bot turns triggered by a command are
played inside the same critical section, so nothing can interleave with a bot sequence. Events are published
while the lock is held, hence in the same order as the state changes they describe.
"""

import secrets
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator, Optional
from uuid import uuid4

import structlog

from src.api.models import (
    AddBotRequest,
    AddBotResponse,
    CreateRoomRequest,
    CreateRoomResponse,
    GameStateView,
    GetRoomRequest,
    JoinRoomRequest,
    JoinRoomResponse,
    LeaveRequest,
    LeaveResponse,
    PlayerInfo,
    PlayerScore,
    PresenceRequest,
    PresenceResponse,
    QuitRequest,
    QuitResponse,
    RollRequest,
    RollResponse,
    RoomStateResponse,
    ScoreRequest,
    ScoreResponse,
    SkipRequest,
    SkipResponse,
    StartGameRequest,
    StartGameResponse,
    TurnSummary,
)
from src.core.config import Settings, get_settings
from src.core.exceptions import (
    GameNotInProgressError,
    InternalError,
    PersistenceError,
    RoomNotFoundError,
)
from src.core.models import GameScoreModel
from src.core.shared_types import EventType, QuitAction, RoomStatus
from src.db.repository import RoomRepository
from src.services.events import EventBroadcaster, InMemoryBroadcaster, RoomEvent
from src.services.room_store import RoomActor, RoomStore
from src.services.supervisor import Scheduler, ThreadingScheduler, TurnTimeoutSupervisor
from src.yahtzee.dice import DiceRoller
from src.yahtzee.game import TurnResult
from src.yahtzee.room import FinalScore, Player, Room
from src.yahtzee.scoring import available_scores

logger = structlog.get_logger()

# no I/O/0/1 to avoid confusion
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RoomService:
    """Room orchestrator + gateway: applies commands to rooms and turns the outcome into events."""

    def __init__(
        self,
        repository: RoomRepository,
        broadcaster: Optional[EventBroadcaster] = None,
        roller: Optional[DiceRoller] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repo = repository
        self.settings = settings if settings is not None else get_settings()
        self.broadcaster = (
            broadcaster
            if broadcaster is not None
            else InMemoryBroadcaster(self.settings.event_log_size)
        )
        self.roller = roller if roller is not None else DiceRoller()
        self.clock = clock
        self.store = RoomStore(repository)
        self.supervisor = TurnTimeoutSupervisor(
            timeout_seconds=self.settings.turn_timeout_seconds,
            scheduler=scheduler if scheduler is not None else ThreadingScheduler(),
            on_timeout=self.handle_turn_timeout,
        )

    # -- API routes logic ---
    def create_room(self, request: CreateRoomRequest) -> CreateRoomResponse:
        """Host creates a new room and gets seated at index 0."""
        code = self._generate_room_code()
        session_id = str(uuid4())
        room = Room.new_room(
            code=code,
            host_name=request.host_name,
            session_id=session_id,
            now=self.clock(),
            max_players=(
                request.max_players
                if request.max_players is not None
                else self.settings.default_max_players
            ),
            ttl=timedelta(hours=self.settings.room_ttl_hours),
        )
        self.repo.create_room(room.to_model())
        self.store.add(room)
        logger.info("room_created", room_code=code, max_players=room.max_players)
        return CreateRoomResponse(room_code=code, session_id=session_id, player_index=0)

    def join_room(self, request: JoinRoomRequest) -> JoinRoomResponse:
        """New player joins the lobby, or a known session gets its seat back."""
        session_id = request.session_id or str(uuid4())
        with self._room(request.room_code) as actor:
            room = actor.room
            known = room.get_player(session_id)
            was_connected = known.is_connected if known else True
            player, rejoined = room.join(request.player_name, session_id)

            if not rejoined:
                self._publish(actor, EventType.PLAYER_JOINED, {"player": self._player_payload(player)})
                logger.info("player_joined", room_code=room.code, player_index=player.player_index)
            elif not was_connected:
                self._publish_presence(actor, player)
                logger.info("player_rejoined", room_code=room.code, player_index=player.player_index)
            self._save(actor)
            self._sync_timer(actor)

            return JoinRoomResponse(
                room_code=room.code,
                player_id=player.id,
                session_id=player.session_id,
                player_index=player.player_index,
                rejoined=rejoined,
                players=[self._player_info(p) for p in room.players],
            )

    def add_bot(self, request: AddBotRequest) -> AddBotResponse:
        """Host fills a seat with a computer player."""
        with self._room(request.room_code) as actor:
            bot = actor.room.add_bot(request.session_id, request.bot_name)
            self._publish(actor, EventType.PLAYER_JOINED, {"player": self._player_payload(bot)})
            self._save(actor)
            logger.info("bot_added", room_code=actor.room.code, player_index=bot.player_index)
            return AddBotResponse(
                player_id=bot.id, player_index=bot.player_index, display_name=bot.display_name
            )

    def start_game(self, request: StartGameRequest) -> StartGameResponse:
        """Host starts the game. When player 0 is a bot, the bots play right away."""
        with self._room(request.room_code) as actor:
            room = actor.room
            turn_order = room.start(request.session_id, self.clock())
            self._publish(
                actor,
                EventType.GAME_STARTED,
                {"turnOrder": turn_order, "firstPlayer": room.current_turn_player_index},
            )
            logger.info("game_started", room_code=room.code, player_count=len(turn_order))

            bot_turns, _ = self._after_turn(actor)
            return StartGameResponse(
                status=room.status,
                turn_order=turn_order,
                first_player=turn_order[0],
                bot_turns=bot_turns,
                game_finished=room.status == RoomStatus.FINISHED,
            )

    def roll(self, request: RollRequest) -> RollResponse:
        """Current player rolls (the held mask is ignored on the first roll of a turn)."""
        with self._room(request.room_code) as actor:
            room = actor.room
            dice = room.roll(request.session_id, self.roller, request.held)
            game = room.game
            assert game is not None
            available = room.available_categories()
            self._publish(
                actor,
                EventType.DICE_ROLL,
                {
                    "dice": dice,
                    "rollCount": game.turn.roll_count,
                    "playerIndex": game.current_player_index,
                    "availableCategories": self._categories_payload(available),
                },
            )
            self._save(actor)
            return RollResponse(
                dice=dice, roll_count=game.turn.roll_count, available_categories=available
            )

    def score(self, request: ScoreRequest) -> ScoreResponse:
        """Current player fills a category. Any bots up next play their turns before this returns."""
        with self._room(request.room_code) as actor:
            room = actor.room
            result = actor.room.score(request.session_id, request.category)
            self._publish_score(actor, result)
            logger.info(
                "category_scored",
                room_code=room.code,
                player_index=result.player_index,
                category=result.category,
                score=result.score,
            )

            bot_turns, final_scores = self._after_turn(actor)
            return ScoreResponse(
                score=result.score,
                bot_turns=bot_turns,
                **self._outcome(room, final_scores),
            )

    def skip(self, request: SkipRequest) -> SkipResponse:
        """A player of the room asks to skip the current turn (e.g. the current player is gone)."""
        with self._room(request.room_code) as actor:
            actor.room.require_player(request.session_id)
            return self._skip_current_turn(actor)

    def quit(self, request: QuitRequest) -> QuitResponse:
        """
        Player leaves a running game.
        ---
        The only human of a match against bots ends it right away with the scores as they are.
        Otherwise the player is marked disconnected, and their turns get skipped.
        """
        with self._room(request.room_code) as actor:
            room = actor.room
            player = room.require_player(request.session_id)
            if room.status != RoomStatus.PLAYING:
                raise GameNotInProgressError(f"Game is not in progress. status: {room.status}")

            if room.is_solo_against_bots(request.session_id):
                logger.info("game_abandoned", room_code=room.code, round=room.current_round)
                final_scores = self._finish(actor)
                self._save(actor)
                self.supervisor.cancel(room.code)
                return QuitResponse(
                    action=QuitAction.FINISHED,
                    scores=self._scores_payload(final_scores),
                    winner=self._winner(final_scores),
                )

            room.set_connected(request.session_id, False)
            self._publish(
                actor, EventType.PLAYER_LEFT, {"playerIndex": player.player_index}
            )
            self._save(actor)
            self._sync_timer(actor)
            logger.info("player_quit", room_code=room.code, player_index=player.player_index)
            return QuitResponse(action=QuitAction.LEFT)

    def leave_room(self, request: LeaveRequest) -> LeaveResponse:
        """Player leaves the lobby. The last one out deletes the room."""
        with self._room(request.room_code) as actor:
            room = actor.room
            player = room.leave(request.session_id)
            logger.info("player_left", room_code=room.code, player_index=player.player_index)

            if not room.players:
                self.store.remove(room.code)
                self.repo.delete_room(room.code)
                self.broadcaster.forget_room(room.code)
                logger.info("room_deleted", room_code=room.code)
                return LeaveResponse(left=True, room_deleted=True)

            self._publish(actor, EventType.PLAYER_LEFT, {"playerIndex": player.player_index})
            self._save(actor)
            return LeaveResponse(left=True, room_deleted=False)

    def set_presence(self, request: PresenceRequest) -> PresenceResponse:
        """Connectivity signal of a client (from the transport's presence tracking)."""
        with self._room(request.room_code) as actor:
            player = actor.room.set_connected(request.session_id, request.connected)
            self._publish_presence(actor, player)
            self._save(actor)
            self._sync_timer(actor)
            return PresenceResponse(
                player_index=player.player_index, is_connected=player.is_connected
            )

    def get_room_state(self, request: GetRoomRequest) -> RoomStateResponse:
        """
        Retrieve current room state.
        ----
        Used in "polling" loop by clients to reconcile with the events they (may have) missed.
        """
        with self._room(request.room_code) as actor:
            room = actor.room
            host = room.get_player(room.host_session_id)
            game_view = None
            if room.game is not None:
                game_view = GameStateView(
                    dice=room.game.turn.dice,
                    held=room.game.turn.held,
                    roll_count=room.game.turn.roll_count,
                    scorecards={
                        index: dict(card) for index, card in room.game.scorecards.items()
                    },
                )
            scores = None
            winner = None
            if room.status == RoomStatus.FINISHED:
                stored = actor.pending_scores or self.repo.get_final_scores(room.code)
                scores = [
                    PlayerScore(player_index=s.player_index, grand_total=s.grand_total)
                    for s in stored
                ]
                winner = next((s.player_index for s in stored if s.is_winner), None)

            return RoomStateResponse(
                room_code=room.code,
                status=room.status,
                max_players=room.max_players,
                host_player_index=host.player_index if host else None,
                current_turn_player_index=room.current_turn_player_index,
                current_round=room.current_round,
                version=room.version,
                players=[self._player_info(p) for p in room.players],
                game_state=game_view,
                scores=scores,
                winner=winner,
            )

    def handle_turn_timeout(self, room_code: str, turn_id: int) -> None:
        """
        Timer callback of the supervisor.
        ---
        Only acts when the very same turn is still on and its player is still disconnected
        (a reconnect or a skip may have won the race for the lock).
        """
        try:
            with self._room(room_code) as actor:
                room = actor.room
                if room.status != RoomStatus.PLAYING or room.game_finished or room.turn_id != turn_id:
                    return
                player = room.current_player()
                if player.is_connected or player.is_bot:
                    return
                logger.info(
                    "turn_timed_out", room_code=room_code, player_index=player.player_index
                )
                self._skip_current_turn(actor)
        except RoomNotFoundError:
            logger.info("turn_timeout_for_missing_room", room_code=room_code)

    def purge_expired(self) -> list[str]:
        """Evict rooms past their expiry from memory and from the repository."""
        now = self.clock()
        purged = []
        for code in self.store.codes():
            try:
                with self.store.locked(code) as actor:
                    if actor.room.is_expired(now):
                        self.store.remove(code)
                        purged.append(code)
            except RoomNotFoundError:
                continue
        for code in purged:
            self.supervisor.cancel(code)
            self.broadcaster.forget_room(code)
        deleted = self.repo.delete_expired(now)
        logger.info("rooms_purged", evicted=len(purged), deleted=len(deleted))
        return sorted(set(purged) | set(deleted))

    # -- Internal helpers --
    @contextmanager
    def _room(self, code: str) -> Iterator[RoomActor]:
        """Exclusive access to a room. Retries writing final scores left over from an earlier failure."""
        with self.store.locked(code.strip().upper()) as actor:
            if actor.pending_scores is not None:
                self._write_final_scores(actor)
            yield actor

    def _skip_current_turn(self, actor: RoomActor) -> SkipResponse:
        room = actor.room
        result = room.skip_current_turn()
        self._publish_score(actor, result, event_type=EventType.TURN_SKIPPED)
        logger.info(
            "turn_skipped",
            room_code=room.code,
            player_index=result.player_index,
            category=result.category,
        )
        bot_turns, final_scores = self._after_turn(actor)
        return SkipResponse(
            category=result.category,
            score=result.score,
            bot_turns=bot_turns,
            **self._outcome(room, final_scores),
        )

    def _after_turn(self, actor: RoomActor) -> tuple[list[TurnSummary], Optional[list[FinalScore]]]:
        """Play the bots that are up next, finish the game when it is over, persist, re-arm the turn timer."""
        room = actor.room
        bot_turns: list[TurnSummary] = []
        while room.bot_to_move:
            assert room.game is not None
            scorecard_before = dict(room.game.current_scorecard())
            result = room.play_bot_turn(self.roller)
            for roll_count, dice in enumerate(result.rolls, start=1):
                self._publish(
                    actor,
                    EventType.DICE_ROLL,
                    {
                        "dice": dice,
                        "rollCount": roll_count,
                        "playerIndex": result.player_index,
                        "availableCategories": self._categories_payload(
                            available_scores(dice, scorecard_before)
                        ),
                    },
                )
            self._publish_score(actor, result)
            bot_turns.append(self._turn_summary(result))

        final_scores = None
        if room.game_finished:
            final_scores = self._finish(actor)
        self._save(actor)
        self._sync_timer(actor)
        return bot_turns, final_scores

    def _finish(self, actor: RoomActor) -> list[FinalScore]:
        """Close the room, write one GameScore per player, announce the result."""
        room = actor.room
        final_scores = room.finish(self.clock())
        actor.pending_scores = [s.to_model() for s in final_scores]
        self._write_final_scores(actor)

        winner = self._winner(final_scores)
        self._publish(
            actor,
            EventType.GAME_END,
            {
                "scores": [s.model_dump(by_alias=True) for s in self._scores_payload(final_scores)],
                "winner": winner,
            },
        )
        logger.info("game_finished", room_code=room.code, winner=winner)
        return final_scores

    def _write_final_scores(self, actor: RoomActor) -> None:
        """Retry the write only, the scores themselves are never recomputed."""
        scores: list[GameScoreModel] = actor.pending_scores or []
        for attempt in range(1, self.settings.persistence_retries + 1):
            try:
                self.repo.save_final_scores(actor.room.code, scores)
            except PersistenceError as exc:
                logger.warning(
                    "final_scores_write_failed",
                    room_code=actor.room.code,
                    attempt=attempt,
                    error=str(exc),
                )
                continue
            actor.pending_scores = None
            return
        logger.error("final_scores_pending", room_code=actor.room.code)

    def _save(self, actor: RoomActor) -> None:
        """Write-through of the room. The in-memory room stays authoritative when the write fails."""
        try:
            stored = self.repo.update_room(actor.room.to_model())
        except PersistenceError as exc:
            logger.warning("room_write_failed", room_code=actor.room.code, error=str(exc))
            return
        if stored is None:
            logger.warning("room_missing_in_repository", room_code=actor.room.code)

    def _sync_timer(self, actor: RoomActor) -> None:
        room = actor.room
        if room.status != RoomStatus.PLAYING or room.turn_id is None or room.game_finished:
            self.supervisor.cancel(room.code)
            return
        player = room.current_player()
        self.supervisor.sync(
            room.code, room.turn_id, needs_timer=not player.is_bot and not player.is_connected
        )

    def _publish(self, actor: RoomActor, event_type: EventType, payload: dict[str, Any]) -> None:
        event = RoomEvent(
            type=event_type,
            room_code=actor.room.code,
            version=actor.room.bump_version(),
            payload=payload,
        )
        self.broadcaster.publish(event)

    def _publish_score(
        self, actor: RoomActor, result: TurnResult, event_type: EventType = EventType.SCORE_UPDATE
    ) -> None:
        self._publish(
            actor,
            event_type,
            {
                "playerIndex": result.player_index,
                "category": result.category.value,
                "score": result.score,
                "nextPlayerIndex": result.next_player_index,
                "round": actor.room.current_round,
                "gameFinished": result.game_finished,
            },
        )

    def _publish_presence(self, actor: RoomActor, player: Player) -> None:
        self._publish(
            actor,
            EventType.PRESENCE,
            {"playerIndex": player.player_index, "isConnected": player.is_connected},
        )

    def _generate_room_code(self) -> str:
        """Random code, checked against the rooms in memory and in the repository."""
        for _ in range(self.settings.room_code_attempts):
            code = "".join(
                secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH)
            )
            if not self.store.contains(code) and not self.repo.room_exists(code):
                return code
        raise InternalError("Failed to generate a unique room code.")

    def _outcome(self, room: Room, final_scores: Optional[list[FinalScore]]) -> dict[str, Any]:
        return {
            "next_player_index": room.current_turn_player_index,
            "round": room.current_round,
            "game_finished": room.status == RoomStatus.FINISHED,
            "scores": self._scores_payload(final_scores) if final_scores else None,
            "winner": self._winner(final_scores) if final_scores else None,
        }

    @staticmethod
    def _turn_summary(result: TurnResult) -> TurnSummary:
        return TurnSummary(
            player_index=result.player_index,
            rolls=result.rolls,
            dice=result.dice,
            roll_count=result.roll_count,
            category=result.category,
            score=result.score,
            skipped=result.skipped,
        )

    @staticmethod
    def _scores_payload(final_scores: list[FinalScore]) -> list[PlayerScore]:
        """Highest grand total first."""
        ranked = sorted(final_scores, key=lambda s: (-s.totals.grand_total, s.player_index))
        return [
            PlayerScore(player_index=s.player_index, grand_total=s.totals.grand_total)
            for s in ranked
        ]

    @staticmethod
    def _winner(final_scores: list[FinalScore]) -> Optional[int]:
        return next((s.player_index for s in final_scores if s.is_winner), None)

    @staticmethod
    def _categories_payload(available: dict) -> dict[str, int]:
        return {category.value: points for category, points in available.items()}

    @staticmethod
    def _player_info(player: Player) -> PlayerInfo:
        return PlayerInfo(
            id=player.id,
            display_name=player.display_name,
            player_index=player.player_index,
            is_bot=player.is_bot,
            is_connected=player.is_connected,
        )

    @staticmethod
    def _player_payload(player: Player) -> dict[str, Any]:
        return RoomService._player_info(player).model_dump(by_alias=True)

