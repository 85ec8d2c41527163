"""Unit tests for /src/yahtzee/room.py"""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import ScriptedRandom

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
from src.core.shared_types import Category, RoomStatus
from src.yahtzee.categories import ALL_CATEGORIES
from src.yahtzee.dice import DiceRoller
from src.yahtzee.room import Room, clean_display_name

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
HOST = "host-session"


@pytest.fixture
def lobby() -> Room:
    return Room.new_room(code="ABCD", host_name="Alice", session_id=HOST, now=NOW)


@pytest.fixture
def started_room(lobby: Room) -> Room:
    """Alice (0) vs Bob (1), Alice to move."""
    lobby.join("Bob", "bob-session")
    lobby.start(HOST, NOW)
    return lobby


# --- CREATION ---
def test_new_room(lobby: Room) -> None:
    assert lobby.status == RoomStatus.LOBBY
    assert lobby.max_players == 4
    assert lobby.expires_at == NOW + timedelta(hours=24)
    assert len(lobby.players) == 1
    host = lobby.players[0]
    assert host.player_index == 0
    assert host.display_name == "Alice"
    assert lobby.is_host(HOST)


@pytest.mark.parametrize("requested, expected", [(1, 2), (2, 2), (3, 3), (4, 4), (9, 4)])
def test_max_players_is_clamped(requested: int, expected: int) -> None:
    room = Room.new_room("ABCD", "Alice", HOST, NOW, max_players=requested)
    assert room.max_players == expected


@pytest.mark.parametrize("name", ["", "   ", "x" * 21])
def test_invalid_display_name(name: str) -> None:
    with pytest.raises(InvalidRequestError) as exc_info:
        clean_display_name(name)
    assert exc_info.value.code == "INVALID_NAME"


def test_display_name_is_trimmed() -> None:
    assert clean_display_name("  Carol ") == "Carol"
    assert clean_display_name("x" * 20) == "x" * 20


# --- JOIN / LEAVE ---
def test_join_assigns_next_index(lobby: Room) -> None:
    player, rejoined = lobby.join("Bob", "bob-session")
    assert not rejoined
    assert player.player_index == 1
    assert [p.player_index for p in lobby.players] == [0, 1]


def test_duplicate_names_get_a_counter(lobby: Room) -> None:
    second, _ = lobby.join("Alice", "s2")
    third, _ = lobby.join("Alice", "s3")
    assert second.display_name == "Alice 2"
    assert third.display_name == "Alice 3"


def test_rejoin_with_known_session_is_idempotent(lobby: Room) -> None:
    player, _ = lobby.join("Bob", "bob-session")
    again, rejoined = lobby.join("Robert", "bob-session")
    assert rejoined
    assert again is player
    assert again.display_name == "Bob"
    assert len(lobby.players) == 2


def test_rejoin_after_start_reconnects(started_room: Room) -> None:
    started_room.set_connected("bob-session", False)
    player, rejoined = started_room.join("Bob", "bob-session")
    assert rejoined
    assert player.is_connected


def test_join_full_room(lobby: Room) -> None:
    for i in range(3):
        lobby.join(f"P{i}", f"s{i}")
    with pytest.raises(RoomFullError):
        lobby.join("Late", "late")
    assert len(lobby.players) == 4


def test_join_started_room(started_room: Room) -> None:
    with pytest.raises(GameStartedError):
        started_room.join("Late", "late")


def test_freed_index_is_reused(lobby: Room) -> None:
    lobby.join("Bob", "bob-session")
    lobby.join("Carol", "carol-session")
    lobby.leave("bob-session")
    player, _ = lobby.join("Dave", "dave-session")
    assert player.player_index == 1


def test_host_leaving_hands_over_to_next_human(lobby: Room) -> None:
    lobby.add_bot(HOST)
    lobby.join("Bob", "bob-session")
    lobby.leave(HOST)
    assert lobby.host_session_id == "bob-session"


def test_leave_unknown_session(lobby: Room) -> None:
    with pytest.raises(NotInGameError):
        lobby.leave("nobody")


# --- BOTS ---
def test_add_bot(lobby: Room) -> None:
    bot = lobby.add_bot(HOST)
    assert bot.is_bot
    assert bot.player_index == 1
    assert bot.display_name == "Bot"
    assert bot.session_id.startswith("bot-")
    second = lobby.add_bot(HOST)
    assert second.display_name == "Bot 2"


def test_only_host_adds_bots(lobby: Room) -> None:
    lobby.join("Bob", "bob-session")
    with pytest.raises(NotHostError):
        lobby.add_bot("bob-session")


# --- START ---
def test_start(lobby: Room) -> None:
    lobby.join("Bob", "bob-session")
    turn_order = lobby.start(HOST, NOW)
    assert turn_order == [0, 1]
    assert lobby.status == RoomStatus.PLAYING
    assert lobby.current_turn_player_index == 0
    assert lobby.current_round == 1
    assert lobby.started_at == NOW
    assert lobby.game is not None
    assert set(lobby.game.scorecards) == {0, 1}


def test_start_needs_two_players(lobby: Room) -> None:
    with pytest.raises(NotEnoughPlayersError):
        lobby.start(HOST, NOW)
    assert lobby.status == RoomStatus.LOBBY


def test_start_only_by_host(lobby: Room) -> None:
    lobby.join("Bob", "bob-session")
    with pytest.raises(NotHostError):
        lobby.start("bob-session", NOW)


def test_start_twice(started_room: Room) -> None:
    with pytest.raises(GameStartedError):
        started_room.start(HOST, NOW)


def test_start_closes_index_gaps(lobby: Room) -> None:
    lobby.join("Bob", "bob-session")
    lobby.join("Carol", "carol-session")
    lobby.leave("bob-session")
    assert lobby.start(HOST, NOW) == [0, 1]
    assert lobby.get_player("carol-session").player_index == 1


# --- PLAY ---
def test_only_current_player_may_act(started_room: Room, roller: DiceRoller) -> None:
    with pytest.raises(NotYourTurnError):
        started_room.roll("bob-session", roller)
    with pytest.raises(NotYourTurnError):
        started_room.score("stranger", Category.CHANCE)


def test_roll_and_score_advance_the_room(started_room: Room) -> None:
    started_room.roll(HOST, DiceRoller(ScriptedRandom([6, 6, 6, 1, 2])))
    result = started_room.score(HOST, Category.SIXES)
    assert result.score == 18
    assert started_room.current_turn_player_index == 1
    assert started_room.current_player().session_id == "bob-session"


def test_play_in_lobby(lobby: Room, roller: DiceRoller) -> None:
    with pytest.raises(GameNotInProgressError):
        lobby.roll(HOST, roller)


def test_bot_to_move(lobby: Room, roller: DiceRoller) -> None:
    lobby.add_bot(HOST)
    lobby.start(HOST, NOW)
    assert not lobby.bot_to_move
    with pytest.raises(NotYourTurnError):
        lobby.play_bot_turn(roller)

    lobby.roll(HOST, roller)
    lobby.score(HOST, Category.CHANCE)
    assert lobby.bot_to_move
    result = lobby.play_bot_turn(roller)
    assert result.player_index == 1
    assert lobby.current_turn_player_index == 0


def test_solo_against_bots(lobby: Room) -> None:
    lobby.add_bot(HOST)
    assert lobby.is_solo_against_bots(HOST)
    lobby.join("Bob", "bob-session")
    assert not lobby.is_solo_against_bots(HOST)


# --- END OF GAME ---
def test_final_scores_and_winner(started_room: Room) -> None:
    game = started_room.game
    for category in ALL_CATEGORIES:
        game.scorecards[0][category] = 0
        game.scorecards[1][category] = 0
    game.scorecards[1][Category.CHANCE] = 20
    game.scorecards[0][Category.SIXES] = 30
    game.scorecards[0][Category.FIVES] = 25
    game.scorecards[0][Category.FOURS] = 10

    scores = started_room.final_scores()
    assert [s.totals.grand_total for s in scores] == [100, 20]
    assert scores[0].totals.upper_bonus == 35
    assert [s.is_winner for s in scores] == [True, False]


def test_tie_goes_to_lowest_index(started_room: Room) -> None:
    scores = started_room.final_scores()
    assert [s.totals.grand_total for s in scores] == [0, 0]
    assert [s.is_winner for s in scores] == [True, False]


def test_finish(started_room: Room) -> None:
    scores = started_room.finish(NOW)
    assert len(scores) == 2
    assert started_room.status == RoomStatus.FINISHED
    assert started_room.finished_at == NOW
    assert started_room.game is None
    with pytest.raises(GameNotInProgressError):
        started_room.finish(NOW)


def test_status_never_moves_backward(started_room: Room) -> None:
    with pytest.raises(InternalError):
        started_room._change_status(RoomStatus.LOBBY)


# --- CONVERSION ---
def test_model_round_trip_keeps_game(started_room: Room, roller: DiceRoller) -> None:
    started_room.roll(HOST, roller)
    restored = Room.from_model(started_room.to_model())
    assert restored == started_room


def test_from_model_with_unknown_status(lobby: Room) -> None:
    model = lobby.to_model()
    model.status = "paused"
    with pytest.raises(InternalError):
        Room.from_model(model)
