"""
Turn state machine of a running game.

GameState owns everything that changes while playing: the dice of the current turn, how often they were rolled,
which player is up, the round, and every player's scorecard.
It is the only place where scorecard slots get filled.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Self

from src.core.exceptions import (
    CategoryFilledError,
    GameNotInProgressError,
    InvalidRequestError,
    MaxRollsReachedError,
    MustRollFirstError,
)
from src.core.shared_types import Category
from src.yahtzee import bot
from src.yahtzee.categories import (
    DICE_COUNT,
    MAX_ROLLS,
    TOTAL_ROUNDS,
    Scorecard,
    empty_scorecard,
    scorecard_from_data,
    scorecard_to_data,
)
from src.yahtzee.dice import DiceRoller, empty_dice, empty_held
from src.yahtzee.scoring import available_scores, is_complete, score


class TurnPhase(Enum):
    AWAITING_ROLL = auto()
    AWAITING_CATEGORY_OR_ROLL = auto()
    AWAITING_CATEGORY = auto()


@dataclass
class TurnState:
    player_index: int
    dice: list[int] = field(default_factory=empty_dice)
    held: list[bool] = field(default_factory=empty_held)
    roll_count: int = 0

    @property
    def phase(self) -> TurnPhase:
        if self.roll_count == 0:
            return TurnPhase.AWAITING_ROLL
        if self.roll_count < MAX_ROLLS:
            return TurnPhase.AWAITING_CATEGORY_OR_ROLL
        return TurnPhase.AWAITING_CATEGORY


@dataclass
class TurnResult:
    """Outcome of a completed turn, as reported to the orchestrator."""

    player_index: int
    category: Category
    score: int
    dice: list[int]
    roll_count: int
    next_player_index: int
    round: int
    game_finished: bool
    skipped: bool = False
    rolls: list[list[int]] = field(default_factory=list)


@dataclass
class GameState:
    player_count: int
    scorecards: dict[int, Scorecard]
    turn: TurnState
    current_round: int = 1
    turn_id: int = 0
    finished: bool = False

    @classmethod
    def new_game(cls, player_count: int) -> Self:
        """Player 0 starts in round 1, every player gets an empty scorecard."""
        return cls(
            player_count=player_count,
            scorecards={index: empty_scorecard() for index in range(player_count)},
            turn=TurnState(player_index=0),
        )

    @property
    def current_player_index(self) -> int:
        return self.turn.player_index

    @property
    def phase(self) -> TurnPhase:
        return self.turn.phase

    def current_scorecard(self) -> Scorecard:
        return self.scorecards[self.turn.player_index]

    def available_categories(self) -> dict[Category, int]:
        """Open categories of the current player with what the current dice would score (empty before a roll)."""
        if self.turn.roll_count == 0:
            return {}
        return available_scores(self.turn.dice, self.current_scorecard())

    def request_roll(self, roller: DiceRoller, held: Optional[list[bool]] = None) -> list[int]:
        """
        Roll for the current player.
        ---
        The first roll of a turn ignores `held` and generates all five dice.
        """
        self._assert_in_progress()
        if self.turn.roll_count >= MAX_ROLLS:
            raise MaxRollsReachedError(f"Already rolled {MAX_ROLLS} times this turn.")

        if self.turn.roll_count == 0:
            self.turn.dice = roller.roll()
            self.turn.held = empty_held()
        else:
            held = held if held is not None else empty_held()
            if len(held) != DICE_COUNT:
                raise InvalidRequestError(
                    f"Held mask must contain {DICE_COUNT} flags.", code="INVALID_HELD"
                )
            self.turn.dice = roller.reroll(self.turn.dice, held)
            self.turn.held = list(held)

        self.turn.roll_count += 1
        return list(self.turn.dice)

    def request_score(self, category: Category) -> TurnResult:
        """Fill a category of the current player with the current dice and pass the turn on."""
        self._assert_in_progress()
        if self.turn.roll_count == 0:
            raise MustRollFirstError("Must roll at least once before scoring.")
        if self.current_scorecard()[category] is not None:
            raise CategoryFilledError(f"Category {category} is already filled.")

        points = score(self.turn.dice, category)
        return self._complete_turn(category, points)

    def skip_turn(self) -> TurnResult:
        """
        Play the turn on behalf of an absent player.
        ---
        Without a roll there is nothing to score, so the cheapest category gets scratched.
        After a roll, the category is picked the way a bot would pick it.
        """
        self._assert_in_progress()
        scorecard = self.current_scorecard()
        if self.turn.roll_count == 0:
            category = bot.sacrifice_category(scorecard)
            points = 0
        else:
            category = bot.choose_category(self.turn.dice, scorecard)
            points = score(self.turn.dice, category)
        return self._complete_turn(category, points, skipped=True)

    def play_bot_turn(self, roller: DiceRoller) -> TurnResult:
        """Full turn of the current player, decided by the bot strategy. Goes through the same checks as a human turn."""
        rolls = [self.request_roll(roller)]
        while bot.should_reroll(self.turn.dice, self.current_scorecard(), self.turn.roll_count):
            held = bot.choose_dice_to_hold(self.turn.dice, self.current_scorecard())
            rolls.append(self.request_roll(roller, held))

        category = bot.choose_category(self.turn.dice, self.current_scorecard())
        result = self.request_score(category)
        result.rolls = rolls
        return result

    def all_complete(self) -> bool:
        return all(is_complete(card) for card in self.scorecards.values())

    # --- (de)serialization of the snapshot stored with the room ---
    def to_dict(self) -> dict[str, Any]:
        return {
            "player_count": self.player_count,
            "current_round": self.current_round,
            "turn_id": self.turn_id,
            "finished": self.finished,
            "dice": list(self.turn.dice),
            "held": list(self.turn.held),
            "roll_count": self.turn.roll_count,
            "player_index": self.turn.player_index,
            "scorecards": {
                str(index): scorecard_to_data(card)
                for index, card in self.scorecards.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            player_count=data["player_count"],
            scorecards={
                int(index): scorecard_from_data(card)
                for index, card in data["scorecards"].items()
            },
            turn=TurnState(
                player_index=data["player_index"],
                dice=list(data["dice"]),
                held=list(data["held"]),
                roll_count=data["roll_count"],
            ),
            current_round=data["current_round"],
            turn_id=data.get("turn_id", 0),
            finished=data.get("finished", False),
        )

    # --- PRIVATE HELPERS ---
    def _assert_in_progress(self) -> None:
        if self.finished:
            raise GameNotInProgressError("Game has already finished.")

    def _complete_turn(self, category: Category, points: int, skipped: bool = False) -> TurnResult:
        """Write the score (never overwritten afterwards), then move on to the next player."""
        player_index = self.turn.player_index
        dice = list(self.turn.dice)
        roll_count = self.turn.roll_count
        self.current_scorecard()[category] = points

        next_index = (player_index + 1) % self.player_count
        next_round = self.current_round + 1 if next_index <= player_index else self.current_round

        self.finished = self.all_complete() or next_round > TOTAL_ROUNDS
        if not self.finished:
            self.current_round = next_round
        self.turn = TurnState(player_index=next_index)
        self.turn_id += 1

        return TurnResult(
            player_index=player_index,
            category=category,
            score=points,
            dice=dice,
            roll_count=roll_count,
            next_player_index=next_index,
            round=self.current_round,
            game_finished=self.finished,
            skipped=skipped,
        )
