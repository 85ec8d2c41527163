"""Unit tests for /src/yahtzee/dice.py"""

import random

import pytest

from src.yahtzee.dice import DiceRoller, empty_dice, empty_held


def test_roll_gives_five_faces(roller: DiceRoller) -> None:
    for _ in range(200):
        dice = roller.roll()
        assert len(dice) == 5
        assert all(1 <= die <= 6 for die in dice)


def test_roll_is_reproducible_with_a_seed() -> None:
    first = DiceRoller(random.Random(42))
    second = DiceRoller(random.Random(42))
    assert [first.roll() for _ in range(10)] == [second.roll() for _ in range(10)]


def test_default_roller_uses_system_randomness() -> None:
    assert isinstance(DiceRoller().rng, random.SystemRandom)


def test_reroll_keeps_held_dice(roller: DiceRoller) -> None:
    """Held positions never change value, whatever gets drawn for the others."""
    current = [6, 1, 6, 2, 6]
    held = [True, False, True, False, True]
    for _ in range(200):
        dice = roller.reroll(current, held)
        assert dice[0] == dice[2] == dice[4] == 6
        assert all(1 <= die <= 6 for die in dice)


def test_reroll_everything_held_changes_nothing(roller: DiceRoller) -> None:
    assert roller.reroll([1, 2, 3, 4, 5], [True] * 5) == [1, 2, 3, 4, 5]


@pytest.mark.parametrize(
    "current, held",
    [
        ([1, 2, 3, 4], [False] * 5),
        ([1, 2, 3, 4, 5], [False] * 4),
    ],
)
def test_reroll_rejects_wrong_sizes(roller: DiceRoller, current: list[int], held: list[bool]) -> None:
    with pytest.raises(ValueError):
        roller.reroll(current, held)


def test_empty_turn_values() -> None:
    assert empty_dice() == [0, 0, 0, 0, 0]
    assert empty_held() == [False] * 5
