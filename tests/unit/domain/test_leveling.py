"""
Unit Tests for the Leveling Calculator
======================================

Purpose
-------
Test the XP curve and level roll-over shared by user stats and skills.

Test Coverage
-------------
- Threshold curve (exact Decimal values, flooring)
- Single and multi-level roll-over
- Invariant experience < experience_to_next
- Rejection of negative deltas

Testing Strategy
----------------
- Pure functions, no fixtures
- AAA pattern (Arrange, Act, Assert)
"""

import pytest

from src.domain.models.base import DomainValidationError
from src.domain.progression.leveling import (
    LevelState,
    apply_experience,
    experience_threshold,
    levels_gained,
)


# ============================================================================
# THRESHOLD CURVE
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestExperienceThreshold:
    """Test the geometric threshold curve."""

    @pytest.mark.parametrize(
        "level,expected",
        [(1, 100), (2, 115), (3, 132), (4, 152), (5, 174)],
    )
    def test_default_curve(self, level, expected):
        """Thresholds follow floor(100 * 1.15 ** (level - 1))."""
        assert experience_threshold(level) == expected

    def test_level_two_is_not_rounded_down_by_float_error(self):
        """100 * 1.15 must give 115, not 114."""
        # Arrange & Act
        threshold = experience_threshold(2, base=100, growth=1.15)

        # Assert
        assert threshold == 115

    def test_custom_curve(self):
        """Base and growth are configurable."""
        assert experience_threshold(3, base=50, growth=2) == 200

    def test_level_must_be_positive(self):
        """Level 0 has no threshold."""
        with pytest.raises(DomainValidationError) as exc_info:
            experience_threshold(0)

        assert "level must be positive" in str(exc_info.value)


# ============================================================================
# ROLL-OVER
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestApplyExperience:
    """Test adding XP and rolling levels over."""

    def test_gain_below_threshold_keeps_level(self):
        """XP accumulates inside the level."""
        # Arrange & Act
        state = apply_experience(1, 0, 20)

        # Assert
        assert state == LevelState(level=1, experience=20, experience_to_next=100)

    def test_exact_threshold_levels_up_with_zero_remainder(self):
        """Hitting the threshold exactly starts the next level at 0."""
        state = apply_experience(1, 0, 100)

        assert state == LevelState(level=2, experience=0, experience_to_next=115)

    def test_large_gain_rolls_over_multiple_levels(self):
        """250 XP from level 1 clears 100 and 115, leaving 35 into level 3."""
        # Arrange & Act
        state = apply_experience(1, 0, 250)

        # Assert
        assert state.level == 3
        assert state.experience == 35
        assert state.experience_to_next == 132
        assert levels_gained(1, state) == 2

    def test_existing_experience_is_carried(self):
        """Current XP counts toward the next threshold."""
        state = apply_experience(2, 110, 10)

        assert state == LevelState(level=3, experience=5, experience_to_next=132)

    def test_zero_gain_is_a_no_op(self):
        """A zero delta returns the same state."""
        state = apply_experience(4, 10, 0)

        assert state == LevelState(level=4, experience=10, experience_to_next=152)
        assert levels_gained(4, state) == 0

    def test_negative_gain_rejected(self):
        """XP is never subtracted through the calculator."""
        with pytest.raises(DomainValidationError) as exc_info:
            apply_experience(1, 50, -10)

        assert exc_info.value.field == "delta_exp"

    def test_result_always_below_threshold(self):
        """The invariant holds for every gain size."""
        for delta in (1, 99, 100, 101, 1_000, 12_345):
            state = apply_experience(1, 0, delta)
            assert 0 <= state.experience < state.experience_to_next


@pytest.mark.unit
@pytest.mark.domain
class TestLevelState:
    """Test LevelState invariants."""

    def test_experience_at_threshold_rejected(self):
        with pytest.raises(DomainValidationError):
            LevelState(level=1, experience=100, experience_to_next=100)

    def test_negative_experience_rejected(self):
        with pytest.raises(DomainValidationError):
            LevelState(level=1, experience=-1, experience_to_next=100)
