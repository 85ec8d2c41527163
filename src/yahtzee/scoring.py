"""
Scoring engine.

Pure functions only: score a category for 5 dice, list the scores still open on a scorecard,
and compute the section / grand totals.
"""

from collections import Counter
from dataclasses import dataclass

from src.core.shared_types import Category
from src.yahtzee.categories import (
    ALL_CATEGORIES,
    FULL_HOUSE_SCORE,
    LARGE_STRAIGHT_SCORE,
    LOWER_CATEGORIES,
    SMALL_STRAIGHT_SCORE,
    UPPER_BONUS_THRESHOLD,
    UPPER_BONUS_VALUE,
    UPPER_CATEGORIES,
    UPPER_CATEGORY_FACE,
    YAHTZEE_SCORE,
    Scorecard,
)

SMALL_STRAIGHTS: tuple[frozenset[int], ...] = (
    frozenset({1, 2, 3, 4}),
    frozenset({2, 3, 4, 5}),
    frozenset({3, 4, 5, 6}),
)


@dataclass(frozen=True)
class ScorecardTotals:
    upper_total: int
    upper_bonus: int
    lower_total: int
    grand_total: int


def score(dice: list[int], category: Category) -> int:
    """Points the dice are worth in the given category."""
    counts = Counter(dice)
    total = sum(dice)

    if category in UPPER_CATEGORY_FACE:
        face = UPPER_CATEGORY_FACE[category]
        return counts[face] * face

    match category:
        case Category.THREE_OF_A_KIND:
            return total if max(counts.values()) >= 3 else 0
        case Category.FOUR_OF_A_KIND:
            return total if max(counts.values()) >= 4 else 0
        case Category.FULL_HOUSE:
            # NOTE five of a kind has counts [5], so it is not a full house
            return FULL_HOUSE_SCORE if sorted(counts.values()) == [2, 3] else 0
        case Category.SMALL_STRAIGHT:
            faces = set(dice)
            return (
                SMALL_STRAIGHT_SCORE
                if any(straight <= faces for straight in SMALL_STRAIGHTS)
                else 0
            )
        case Category.LARGE_STRAIGHT:
            faces = sorted(set(dice))
            is_run = len(faces) == 5 and faces[-1] - faces[0] == 4
            return LARGE_STRAIGHT_SCORE if is_run else 0
        case Category.YAHTZEE:
            return YAHTZEE_SCORE if len(counts) == 1 else 0
        case Category.CHANCE:
            return total

    raise ValueError(f"Unknown category: {category!r}")


def available_scores(dice: list[int], scorecard: Scorecard) -> dict[Category, int]:
    """Score for every category that has not been filled yet."""
    return {
        category: score(dice, category)
        for category in ALL_CATEGORIES
        if scorecard[category] is None
    }


def totals(scorecard: Scorecard) -> ScorecardTotals:
    """Unfilled categories count as zero."""
    upper_total = sum(scorecard[category] or 0 for category in UPPER_CATEGORIES)
    lower_total = sum(scorecard[category] or 0 for category in LOWER_CATEGORIES)
    upper_bonus = UPPER_BONUS_VALUE if upper_total >= UPPER_BONUS_THRESHOLD else 0
    return ScorecardTotals(
        upper_total=upper_total,
        upper_bonus=upper_bonus,
        lower_total=lower_total,
        grand_total=upper_total + upper_bonus + lower_total,
    )


def is_complete(scorecard: Scorecard) -> bool:
    return all(scorecard[category] is not None for category in ALL_CATEGORIES)
