"""Server-side dice. Clients never supply dice values."""

import random

from src.yahtzee.categories import DICE_COUNT, DIE_FACES


class DiceRoller:
    """Rolls dice with an injectable random source (seeded in tests)."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng if rng is not None else random.SystemRandom()

    def roll_one(self) -> int:
        return self.rng.randint(1, DIE_FACES)

    def roll(self) -> list[int]:
        """A fresh set of 5 dice."""
        return [self.roll_one() for _ in range(DICE_COUNT)]

    def reroll(self, current: list[int], held: list[bool]) -> list[int]:
        """Held dice keep their value, the others get redrawn."""
        if len(current) != DICE_COUNT or len(held) != DICE_COUNT:
            raise ValueError(f"Expected {DICE_COUNT} dice and {DICE_COUNT} held flags.")
        return [value if keep else self.roll_one() for value, keep in zip(current, held)]


def empty_dice() -> list[int]:
    return [0] * DICE_COUNT


def empty_held() -> list[bool]:
    return [False] * DICE_COUNT
