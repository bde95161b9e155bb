"""
Energy ledger.

Energy balls are a capped daily budget: completions spend them, undoing a
completion refunds them, and the first access on a new UTC calendar day
refills them to the cap. Every function is pure and returns a new
`UserStats` with `updated_at` refreshed.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Tuple

from src.domain.models.base import DomainValidationError
from src.domain.models.user_stats import UserStats
from src.modules.shared.exceptions import InsufficientEnergyError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_amount(amount: int, field_name: str) -> None:
    if amount < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {amount}",
            field=field_name,
        )


def can_afford(stats: UserStats, cost: int) -> bool:
    """True when `stats` holds at least `cost` balls."""
    return stats.energy_balls >= cost


def spend(stats: UserStats, cost: int, now: Optional[datetime] = None) -> UserStats:
    """
    Deduct `cost` energy balls.

    Raises:
        InsufficientEnergyError: `cost` exceeds the current balance; the
            stats are left untouched
        DomainValidationError: `cost` is negative

    Example:
        >>> spend(UserStats(user_id="u", energy_balls=5), 3).energy_balls
        2
    """
    _validate_amount(cost, "cost")
    if not can_afford(stats, cost):
        raise InsufficientEnergyError(required=cost, current=stats.energy_balls)
    return stats.evolve(now, energy_balls=stats.energy_balls - cost)


def refund(stats: UserStats, amount: int, now: Optional[datetime] = None) -> UserStats:
    """Give back `amount` balls, never above the cap."""
    _validate_amount(amount, "amount")
    return stats.evolve(
        now,
        energy_balls=min(stats.energy_balls + amount, stats.max_energy_balls),
    )


def restore(stats: UserStats, now: Optional[datetime] = None) -> UserStats:
    """Refill to `max_energy_balls`."""
    return stats.evolve(now, energy_balls=stats.max_energy_balls)


def _calendar_day(moment: Optional[datetime]) -> Optional[date]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def daily_reset_if_needed(
    stats: UserStats,
    now: Optional[datetime] = None,
) -> Tuple[UserStats, bool]:
    """
    Refill energy once per UTC calendar day.

    Compares the calendar date of `last_energy_reset` with today's. When
    they differ (or no reset was ever recorded) energy is restored and
    `last_energy_reset` stamped with `now`. Calling it again the same day
    returns the stats unchanged.

    Returns:
        (stats, restored)
    """
    now = now or _now()
    if _calendar_day(stats.last_energy_reset) == _calendar_day(now):
        return stats, False

    return (
        stats.evolve(
            now,
            energy_balls=stats.max_energy_balls,
            last_energy_reset=now,
        ),
        True,
    )
