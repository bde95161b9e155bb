"""
Task reward resolver.

Determines the (exp, energy) pair a task is worth. Two XP tables exist and
the creation path chooses one explicitly:

    STANDARD     trivial=1  easy=2   medium=3   hard=4   (manual creation)
    AI_CREATION  trivial=10 easy=10  medium=20  hard=35  (intelligent creation)

Energy defaults to one ball per 15 minutes of estimated duration (minimum
one). Intelligent creation prices energy by difficulty instead. Explicit
`exp_reward` / `required_energy_balls` values always win.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from src.domain.models.base import DomainValidationError


class Difficulty(str, Enum):
    TRIVIAL = "trivial"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Any, default: Optional["Difficulty"] = None) -> "Difficulty":
        """Parse case-insensitively; unknown values fall back to `default` (MEDIUM)."""
        if isinstance(value, Difficulty):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or cls.MEDIUM


class TaskCategory(str, Enum):
    HABIT = "habit"
    DAILY = "daily"
    TODO = "todo"

    @property
    def is_repeating(self) -> bool:
        return self is not TaskCategory.TODO


@dataclass(frozen=True)
class RewardTable:
    name: str
    exp_by_difficulty: Mapping[Difficulty, int]

    def exp_for(self, difficulty: Difficulty) -> int:
        return self.exp_by_difficulty[difficulty]

    @classmethod
    def from_config(cls, name: str, values: Mapping[str, Any]) -> RewardTable:
        """Build a table from a `rewards.<name>` config section."""
        return cls(
            name=name,
            exp_by_difficulty={d: int(values[d.value]) for d in Difficulty},
        )


STANDARD = RewardTable(
    "standard",
    {Difficulty.TRIVIAL: 1, Difficulty.EASY: 2, Difficulty.MEDIUM: 3, Difficulty.HARD: 4},
)

AI_CREATION = RewardTable(
    "ai_creation",
    {Difficulty.TRIVIAL: 10, Difficulty.EASY: 10, Difficulty.MEDIUM: 20, Difficulty.HARD: 35},
)

DIFFICULTY_ENERGY: Mapping[Difficulty, int] = {
    Difficulty.TRIVIAL: 1,
    Difficulty.EASY: 1,
    Difficulty.MEDIUM: 2,
    Difficulty.HARD: 4,
}

MINUTES_PER_BALL = 15


@dataclass(frozen=True)
class Reward:
    exp: int
    energy: int


def energy_cost_for_duration(estimated_minutes: Optional[int], minutes_per_ball: int = MINUTES_PER_BALL) -> int:
    """
    One ball per started quarter hour, at least one.

    Example:
        >>> energy_cost_for_duration(25)
        2
        >>> energy_cost_for_duration(0)
        1
    """
    minutes = max(0, estimated_minutes or 0)
    return max(1, math.ceil(minutes / minutes_per_ball))


def energy_cost_for_difficulty(difficulty: Difficulty) -> int:
    return DIFFICULTY_ENERGY[difficulty]


def resolve_reward(
    difficulty: Difficulty,
    estimated_duration: Optional[int] = None,
    exp_override: Optional[int] = None,
    energy_override: Optional[int] = None,
    table: RewardTable = STANDARD,
    price_energy_by_difficulty: bool = False,
    minutes_per_ball: int = MINUTES_PER_BALL,
) -> Reward:
    """
    Resolve the reward for a task.

    Args:
        difficulty: Task difficulty
        estimated_duration: Minutes; drives the default energy cost
        exp_override: Explicit XP reward (wins over the table)
        energy_override: Explicit energy cost (wins over any derivation)
        table: XP table chosen by the creation path
        price_energy_by_difficulty: Use the difficulty energy table instead
            of the duration rule (intelligent creation)

    Raises:
        DomainValidationError: An override is negative

    Example:
        >>> resolve_reward(Difficulty.MEDIUM, 25)
        Reward(exp=3, energy=2)
        >>> resolve_reward(Difficulty.HARD, table=AI_CREATION, price_energy_by_difficulty=True)
        Reward(exp=35, energy=4)
    """
    if exp_override is not None and exp_override < 0:
        raise DomainValidationError("exp_reward must be non-negative", field="exp_reward")
    if energy_override is not None and energy_override < 0:
        raise DomainValidationError(
            "required_energy_balls must be non-negative",
            field="required_energy_balls",
        )

    exp = exp_override if exp_override is not None else table.exp_for(difficulty)

    if energy_override is not None:
        energy = energy_override
    elif price_energy_by_difficulty:
        energy = energy_cost_for_difficulty(difficulty)
    else:
        energy = energy_cost_for_duration(estimated_duration, minutes_per_ball)

    return Reward(exp=exp, energy=energy)


_CATEGORY_ALIASES: Mapping[str, TaskCategory] = {
    # one-off
    "todo": TaskCategory.TODO,
    "side": TaskCategory.TODO,
    "sidequest": TaskCategory.TODO,
    "side quest": TaskCategory.TODO,
    "side_quest": TaskCategory.TODO,
    "task": TaskCategory.TODO,
    "once": TaskCategory.TODO,
    "single": TaskCategory.TODO,
    "goal": TaskCategory.TODO,
    "main": TaskCategory.TODO,
    "mainquest": TaskCategory.TODO,
    "main_quest": TaskCategory.TODO,
    # repeating
    "habit": TaskCategory.HABIT,
    "routine": TaskCategory.HABIT,
    "recurring": TaskCategory.HABIT,
    "repeat": TaskCategory.HABIT,
    "daily": TaskCategory.DAILY,
}


def normalize_category(value: Any) -> TaskCategory:
    """
    Map free-form category input onto habit / daily / todo.

    Example:
        >>> normalize_category("Side Quest")
        <TaskCategory.TODO: 'todo'>
        >>> normalize_category("routine")
        <TaskCategory.HABIT: 'habit'>
        >>> normalize_category("whatever")
        <TaskCategory.TODO: 'todo'>
    """
    if isinstance(value, TaskCategory):
        return value
    if value is None:
        return TaskCategory.TODO
    key = str(value).strip().lower().replace("-", "_")
    return _CATEGORY_ALIASES.get(key, TaskCategory.TODO)
