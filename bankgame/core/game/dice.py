"""
Dice rolls from an injected random source.
"""

import random
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class DiceRoll:
    die1: int
    die2: int

    @property
    def total(self) -> int:
        return self.die1 + self.die2

    @property
    def is_double(self) -> bool:
        return self.die1 == self.die2

    @property
    def dice(self) -> Tuple[int, int]:
        return (self.die1, self.die2)


def roll_dice(rng: random.Random) -> DiceRoll:
    """Roll two independent six-sided dice."""
    return DiceRoll(rng.randint(1, 6), rng.randint(1, 6))
