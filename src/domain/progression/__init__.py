"""
Progression engine.

Pure rules shared by every entry point that changes a user's progress
(manual completion, intelligent creation, pomodoro completion, the daily
reset):

- leveling: XP thresholds and level roll-over
- energy: energy ball spend / refund / daily refill
- habit: streak state machine and streak bonus
- rewards: reward tables, energy pricing, category normalization
"""

from src.domain.progression import energy, habit, leveling, rewards
from src.domain.progression.energy import can_afford, daily_reset_if_needed, refund, restore, spend
from src.domain.progression.habit import HabitProgress, HabitState, classify, streak_bonus
from src.domain.progression.leveling import LevelState, apply_experience, experience_threshold
from src.domain.progression.rewards import (
    AI_CREATION,
    STANDARD,
    Difficulty,
    Reward,
    RewardTable,
    TaskCategory,
    normalize_category,
    resolve_reward,
)

__all__ = [
    "energy",
    "habit",
    "leveling",
    "rewards",
    "can_afford",
    "spend",
    "refund",
    "restore",
    "daily_reset_if_needed",
    "HabitProgress",
    "HabitState",
    "classify",
    "streak_bonus",
    "LevelState",
    "apply_experience",
    "experience_threshold",
    "AI_CREATION",
    "STANDARD",
    "Difficulty",
    "Reward",
    "RewardTable",
    "TaskCategory",
    "normalize_category",
    "resolve_reward",
]
