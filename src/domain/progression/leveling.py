"""
Leveling calculator.

Pure functions shared by user stats and skills: both level on the same
geometric curve, computed independently.

    threshold(level) = floor(base * growth ** (level - 1))

With the default base 100 and growth 1.15 the first thresholds are
100, 115, 132, 152, 174, ...
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from src.domain.models.base import DomainValidationError, validate_positive

DEFAULT_BASE = 100
DEFAULT_GROWTH = 1.15

Number = Union[int, float, str, Decimal]


@dataclass(frozen=True)
class LevelState:
    """
    Normalized progression state.

    Attributes
    ----------
    level : int
        Current level (>= 1)
    experience : int
        XP accumulated inside the current level
    experience_to_next : int
        Threshold of the current level; always greater than `experience`
    """

    level: int
    experience: int
    experience_to_next: int

    def __post_init__(self) -> None:
        validate_positive(self.level, "level")
        if self.experience < 0:
            raise DomainValidationError("experience cannot be negative", field="experience")
        if self.experience >= self.experience_to_next:
            raise DomainValidationError(
                f"experience {self.experience} must be below threshold {self.experience_to_next}",
                field="experience",
            )


def experience_threshold(
    level: int,
    base: Number = DEFAULT_BASE,
    growth: Number = DEFAULT_GROWTH,
) -> int:
    """
    XP required to clear `level`.

    Decimal arithmetic keeps the curve exact: in binary floats
    100 * 1.15 is 114.999..., which would floor to 114.

    Args:
        level: Level being cleared (>= 1)
        base: Threshold of level 1
        growth: Per-level multiplier

    Returns:
        Integer threshold

    Example:
        >>> experience_threshold(1)
        100
        >>> experience_threshold(2)
        115
    """
    validate_positive(level, "level")
    value = Decimal(str(base)) * Decimal(str(growth)) ** (level - 1)
    return int(math.floor(value))


def apply_experience(
    current_level: int,
    current_exp: int,
    delta_exp: int,
    base: Number = DEFAULT_BASE,
    growth: Number = DEFAULT_GROWTH,
) -> LevelState:
    """
    Add XP and roll over as many levels as the pool covers.

    Args:
        current_level: Level before the gain
        current_exp: XP inside the current level before the gain
        delta_exp: XP gained (>= 0)
        base: Curve base
        growth: Curve growth

    Returns:
        LevelState with `experience < experience_to_next`

    Raises:
        DomainValidationError: delta_exp is negative

    Example:
        >>> apply_experience(1, 0, 100)
        LevelState(level=2, experience=0, experience_to_next=115)
        >>> apply_experience(1, 0, 20)
        LevelState(level=1, experience=20, experience_to_next=100)
    """
    if delta_exp < 0:
        raise DomainValidationError(
            f"experience delta must be non-negative, got {delta_exp}",
            field="delta_exp",
        )

    level = current_level
    pool = current_exp + delta_exp
    threshold = experience_threshold(level, base, growth)

    while pool >= threshold:
        pool -= threshold
        level += 1
        threshold = experience_threshold(level, base, growth)

    return LevelState(level=level, experience=pool, experience_to_next=threshold)


def levels_gained(before: int, after: LevelState) -> int:
    return after.level - before
