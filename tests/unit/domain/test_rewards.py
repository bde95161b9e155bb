"""
Unit Tests for the Reward Resolver
==================================

Purpose
-------
Test how tasks are priced in XP and energy balls.

Test Coverage
-------------
- STANDARD and AI_CREATION tables
- Duration and difficulty energy pricing
- Explicit overrides
- Difficulty parsing and category normalization

Testing Strategy
----------------
- Pure functions
- Parametrized tables instead of one test per row
"""

import pytest

from src.domain.models.base import DomainValidationError
from src.domain.progression.rewards import (
    AI_CREATION,
    STANDARD,
    Difficulty,
    Reward,
    RewardTable,
    TaskCategory,
    energy_cost_for_duration,
    normalize_category,
    resolve_reward,
)


# ============================================================================
# TABLES
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestRewardTables:
    """Test the two XP tables."""

    @pytest.mark.parametrize(
        "difficulty,standard,ai",
        [
            (Difficulty.TRIVIAL, 1, 10),
            (Difficulty.EASY, 2, 10),
            (Difficulty.MEDIUM, 3, 20),
            (Difficulty.HARD, 4, 35),
        ],
    )
    def test_table_values(self, difficulty, standard, ai):
        assert STANDARD.exp_for(difficulty) == standard
        assert AI_CREATION.exp_for(difficulty) == ai

    def test_from_config(self):
        table = RewardTable.from_config(
            "custom",
            {"trivial": 5, "easy": "6", "medium": 7, "hard": 8},
        )

        assert table.exp_for(Difficulty.EASY) == 6
        assert table.exp_for(Difficulty.HARD) == 8

    def test_from_config_missing_difficulty(self):
        with pytest.raises(KeyError):
            RewardTable.from_config("broken", {"easy": 1})


# ============================================================================
# RESOLUTION
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestResolveReward:
    """Test picking exp and energy for a new task."""

    @pytest.mark.parametrize(
        "minutes,balls",
        [(None, 1), (0, 1), (1, 1), (15, 1), (16, 2), (25, 2), (45, 3), (50, 4), (120, 8)],
    )
    def test_energy_by_duration(self, minutes, balls):
        """One ball per started quarter hour, minimum one."""
        assert energy_cost_for_duration(minutes) == balls

    def test_standard_medium_default(self):
        assert resolve_reward(Difficulty.MEDIUM, 25) == Reward(exp=3, energy=2)

    def test_hard_fifty_minutes(self):
        assert resolve_reward(Difficulty.HARD, 50) == Reward(exp=4, energy=4)

    def test_ai_creation_prices_by_difficulty(self):
        # Arrange & Act
        reward = resolve_reward(
            Difficulty.HARD,
            estimated_duration=10,
            table=AI_CREATION,
            price_energy_by_difficulty=True,
        )

        # Assert
        assert reward == Reward(exp=35, energy=4)

    def test_overrides_win(self):
        reward = resolve_reward(
            Difficulty.TRIVIAL,
            estimated_duration=90,
            exp_override=50,
            energy_override=0,
        )

        assert reward == Reward(exp=50, energy=0)

    def test_negative_exp_override_rejected(self):
        with pytest.raises(DomainValidationError) as exc_info:
            resolve_reward(Difficulty.EASY, exp_override=-1)

        assert exc_info.value.field == "exp_reward"

    def test_negative_energy_override_rejected(self):
        with pytest.raises(DomainValidationError) as exc_info:
            resolve_reward(Difficulty.EASY, energy_override=-2)

        assert exc_info.value.field == "required_energy_balls"


# ============================================================================
# PARSING
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestParsing:
    """Test free-form input normalization."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("hard", Difficulty.HARD),
            (" EASY ", Difficulty.EASY),
            (Difficulty.TRIVIAL, Difficulty.TRIVIAL),
            ("impossible", Difficulty.MEDIUM),
            (None, Difficulty.MEDIUM),
        ],
    )
    def test_difficulty_parse(self, value, expected):
        assert Difficulty.parse(value) is expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("habit", TaskCategory.HABIT),
            ("routine", TaskCategory.HABIT),
            ("daily", TaskCategory.DAILY),
            ("Side Quest", TaskCategory.TODO),
            ("main-quest", TaskCategory.TODO),
            ("todo", TaskCategory.TODO),
            ("something else", TaskCategory.TODO),
            (None, TaskCategory.TODO),
        ],
    )
    def test_normalize_category(self, value, expected):
        assert normalize_category(value) is expected

    def test_repeating_categories(self):
        assert TaskCategory.HABIT.is_repeating
        assert TaskCategory.DAILY.is_repeating
        assert not TaskCategory.TODO.is_repeating
