"""Scoring categories, scorecard layout and the fixed numbers of the game."""

from typing import Optional

from src.core.shared_types import Category

Scorecard = dict[Category, Optional[int]]

UPPER_CATEGORIES: tuple[Category, ...] = (
    Category.ONES,
    Category.TWOS,
    Category.THREES,
    Category.FOURS,
    Category.FIVES,
    Category.SIXES,
)

LOWER_CATEGORIES: tuple[Category, ...] = (
    Category.THREE_OF_A_KIND,
    Category.FOUR_OF_A_KIND,
    Category.FULL_HOUSE,
    Category.SMALL_STRAIGHT,
    Category.LARGE_STRAIGHT,
    Category.YAHTZEE,
    Category.CHANCE,
)

ALL_CATEGORIES: tuple[Category, ...] = UPPER_CATEGORIES + LOWER_CATEGORIES

# The face value an upper category counts
UPPER_CATEGORY_FACE: dict[Category, int] = {
    category: face for face, category in enumerate(UPPER_CATEGORIES, start=1)
}

UPPER_BONUS_THRESHOLD = 63
UPPER_BONUS_VALUE = 35
FULL_HOUSE_SCORE = 25
SMALL_STRAIGHT_SCORE = 30
LARGE_STRAIGHT_SCORE = 40
YAHTZEE_SCORE = 50

TOTAL_ROUNDS = 13
DICE_COUNT = 5
DIE_FACES = 6
MAX_ROLLS = 3

# Highest score a category can ever yield
MAX_CATEGORY_SCORE: dict[Category, int] = {
    **{category: face * DICE_COUNT for category, face in UPPER_CATEGORY_FACE.items()},
    Category.THREE_OF_A_KIND: 30,
    Category.FOUR_OF_A_KIND: 30,
    Category.FULL_HOUSE: FULL_HOUSE_SCORE,
    Category.SMALL_STRAIGHT: SMALL_STRAIGHT_SCORE,
    Category.LARGE_STRAIGHT: LARGE_STRAIGHT_SCORE,
    Category.YAHTZEE: YAHTZEE_SCORE,
    Category.CHANCE: 30,
}


def empty_scorecard() -> Scorecard:
    return {category: None for category in ALL_CATEGORIES}


def is_category(value: str) -> bool:
    return value in Category._value2member_map_


def scorecard_to_data(scorecard: Scorecard) -> dict[str, Optional[int]]:
    """Plain str keys, e.g. to store as JSON."""
    return {category.value: scorecard[category] for category in ALL_CATEGORIES}


def scorecard_from_data(data: dict[str, Optional[int]]) -> Scorecard:
    """Inverse of scorecard_to_data. Missing categories are treated as unfilled."""
    scorecard = empty_scorecard()
    for name, value in data.items():
        scorecard[Category(name)] = value
    return scorecard
