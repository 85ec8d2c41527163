"""
Greedy bot strategy. Deterministic given (dice, scorecard).

Categories are ranked by their marginal value: achievable score / highest score the category can ever yield.
"""

from collections import Counter

from src.core.exceptions import NoCategoriesError
from src.core.shared_types import Category
from src.yahtzee.categories import (
    ALL_CATEGORIES,
    MAX_CATEGORY_SCORE,
    MAX_ROLLS,
    UPPER_CATEGORY_FACE,
    Scorecard,
)
from src.yahtzee.scoring import available_scores

# Stop rolling once a category is filled to at least this fraction of its maximum
GOOD_ENOUGH_MARGINAL_VALUE = 0.8

# Marginal values this close to the best one are treated as equal, the absolute score decides
NEAR_TIE_MARGIN = 0.05

# On a complete tie, fill the category that is hardest to get later on
TIE_BREAK_PREFERENCE: tuple[Category, ...] = (
    Category.YAHTZEE,
    Category.LARGE_STRAIGHT,
    Category.FOUR_OF_A_KIND,
    Category.FULL_HOUSE,
    Category.SMALL_STRAIGHT,
    Category.THREE_OF_A_KIND,
    Category.SIXES,
    Category.FIVES,
    Category.FOURS,
    Category.THREES,
    Category.TWOS,
    Category.ONES,
    Category.CHANCE,
)


def marginal_value(category: Category, points: int) -> float:
    return points / MAX_CATEGORY_SCORE[category]


def sacrifice_category(scorecard: Scorecard) -> Category:
    """Open category with the lowest theoretical maximum (loses the least upside when scratched)."""
    open_categories = [c for c in ALL_CATEGORIES if scorecard[c] is None]
    if not open_categories:
        raise NoCategoriesError("Scorecard is complete, no category left to fill.")
    return min(open_categories, key=lambda c: MAX_CATEGORY_SCORE[c])


def _target_category(available: dict[Category, int]) -> Category:
    """Highest marginal value. Near-ties go to the higher score, then to the harder category."""
    best_value = max(marginal_value(c, points) for c, points in available.items())
    contenders = [
        c
        for c, points in available.items()
        if marginal_value(c, points) >= best_value - NEAR_TIE_MARGIN
    ]
    return max(
        contenders,
        key=lambda c: (
            available[c],
            marginal_value(c, available[c]),
            -TIE_BREAK_PREFERENCE.index(c),
        ),
    )


def choose_category(dice: list[int], scorecard: Scorecard) -> Category:
    """Category the bot scores its final dice in."""
    available = available_scores(dice, scorecard)
    if not available:
        raise NoCategoriesError("Scorecard is complete, no category left to fill.")

    # Nothing scores: scratch the category that costs the least
    if max(available.values()) == 0:
        return sacrifice_category(scorecard)

    return _target_category(available)


def choose_dice_to_hold(dice: list[int], scorecard: Scorecard) -> list[bool]:
    """Held flags for the next re-roll, chosen to work towards the current best category."""
    available = available_scores(dice, scorecard)
    if not available:
        return [True] * len(dice)
    return hold_pattern(dice, _target_category(available))


def hold_pattern(dice: list[int], target: Category) -> list[bool]:
    if target in UPPER_CATEGORY_FACE:
        face = UPPER_CATEGORY_FACE[target]
        return [die == face for die in dice]

    counts = Counter(dice)
    # most frequent first, higher face wins a tie
    by_frequency = sorted(counts, key=lambda face: (counts[face], face), reverse=True)

    match target:
        case Category.THREE_OF_A_KIND | Category.FOUR_OF_A_KIND | Category.YAHTZEE:
            keep = by_frequency[0]
            return [die == keep for die in dice]
        case Category.FULL_HOUSE:
            keep_faces = set(by_frequency[:2])
            return [die in keep_faces for die in dice]
        case Category.SMALL_STRAIGHT | Category.LARGE_STRAIGHT:
            seen: set[int] = set()
            held = []
            for die in dice:
                held.append(die not in seen)
                seen.add(die)
            return held
        case Category.CHANCE:
            return [die >= 4 for die in dice]
        case _:
            return [False] * len(dice)


def should_reroll(dice: list[int], scorecard: Scorecard, roll_count: int) -> bool:
    if roll_count >= MAX_ROLLS:
        return False
    available = available_scores(dice, scorecard)
    if not available:
        return False
    best_value = max(marginal_value(c, points) for c, points in available.items())
    return best_value < GOOD_ENOUGH_MARGINAL_VALUE
