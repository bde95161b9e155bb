"""
Unit Tests for the Energy Ledger
================================

Purpose
-------
Test spending, refunding and the once-per-day refill of energy balls.

Test Coverage
-------------
- spend / can_afford and InsufficientEnergyError
- refund capped at max_energy_balls
- daily_reset_if_needed calendar-day semantics (UTC)

Testing Strategy
----------------
- Pure functions over UserStats snapshots
- AAA pattern (Arrange, Act, Assert)
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.domain.models.base import DomainValidationError
from src.domain.models.user_stats import UserStats
from src.domain.progression import energy
from src.modules.shared.exceptions import InsufficientEnergyError

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_stats(**overrides) -> UserStats:
    values = {"user_id": "user-1", "last_energy_reset": NOW, "updated_at": NOW}
    values.update(overrides)
    return UserStats(**values)


# ============================================================================
# SPEND / REFUND
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSpend:
    """Test spending energy balls."""

    def test_spend_deducts_cost(self):
        # Arrange
        stats = make_stats(energy_balls=5)

        # Act
        result = energy.spend(stats, 3, now=NOW)

        # Assert
        assert result.energy_balls == 2
        assert stats.energy_balls == 5  # snapshot is immutable

    def test_spend_entire_balance(self):
        result = energy.spend(make_stats(energy_balls=4), 4, now=NOW)

        assert result.energy_balls == 0

    def test_insufficient_energy_raises(self):
        """Spending more than the balance fails and reports both numbers."""
        # Arrange
        stats = make_stats(energy_balls=1)

        # Act & Assert
        with pytest.raises(InsufficientEnergyError) as exc_info:
            energy.spend(stats, 2, now=NOW)

        assert exc_info.value.required == 2
        assert exc_info.value.current == 1
        assert exc_info.value.error_code == "INSUFFICIENT_ENERGY"
        assert exc_info.value.message == "能量球不足: 需要 2 个, 当前 1 个"

    def test_negative_cost_rejected(self):
        with pytest.raises(DomainValidationError):
            energy.spend(make_stats(), -1, now=NOW)

    def test_can_afford(self):
        stats = make_stats(energy_balls=2)

        assert energy.can_afford(stats, 2)
        assert not energy.can_afford(stats, 3)


@pytest.mark.unit
@pytest.mark.domain
class TestRefund:
    """Test giving energy back."""

    def test_refund_adds_back(self):
        result = energy.refund(make_stats(energy_balls=10), 3, now=NOW)

        assert result.energy_balls == 13

    def test_refund_capped_at_max(self):
        """A refund never pushes energy above the cap."""
        result = energy.refund(make_stats(energy_balls=17), 4, now=NOW)

        assert result.energy_balls == 18

    def test_restore_fills_to_max(self):
        result = energy.restore(make_stats(energy_balls=0), now=NOW)

        assert result.energy_balls == result.max_energy_balls == 18


# ============================================================================
# DAILY RESET
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestDailyReset:
    """Test the first-access-of-the-day refill."""

    def test_same_day_no_reset(self):
        # Arrange
        stats = make_stats(energy_balls=3, last_energy_reset=NOW - timedelta(hours=8))

        # Act
        result, restored = energy.daily_reset_if_needed(stats, NOW)

        # Assert
        assert restored is False
        assert result is stats

    def test_new_day_refills_and_stamps(self):
        """Crossing midnight UTC refills, even after only a few hours."""
        # Arrange
        late_yesterday = datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc)
        early_today = datetime(2026, 3, 10, 0, 15, tzinfo=timezone.utc)
        stats = make_stats(energy_balls=2, last_energy_reset=late_yesterday)

        # Act
        result, restored = energy.daily_reset_if_needed(stats, early_today)

        # Assert
        assert restored is True
        assert result.energy_balls == 18
        assert result.last_energy_reset == early_today

    def test_never_reset_counts_as_new_day(self):
        stats = make_stats(energy_balls=0, last_energy_reset=None)

        result, restored = energy.daily_reset_if_needed(stats, NOW)

        assert restored is True
        assert result.energy_balls == 18

    def test_second_call_same_day_is_idempotent(self):
        stats = make_stats(energy_balls=1, last_energy_reset=NOW - timedelta(days=1))
        first, _ = energy.daily_reset_if_needed(stats, NOW)
        spent = energy.spend(first, 5, now=NOW)

        second, restored = energy.daily_reset_if_needed(spent, NOW + timedelta(hours=2))

        assert restored is False
        assert second.energy_balls == 13

    def test_naive_timestamp_treated_as_utc(self):
        naive_yesterday = datetime(2026, 3, 9, 12, 0)
        stats = make_stats(energy_balls=4, last_energy_reset=naive_yesterday)

        _, restored = energy.daily_reset_if_needed(stats, NOW)

        assert restored is True
