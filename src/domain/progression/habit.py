"""
Habit streak tracker.

A habit's state is derived from `(last_completed_date, today)` alone; there
are no timers. Dates are compared as UTC calendar days.

States
------
- NEVER_COMPLETED
- COMPLETED_TODAY
- COMPLETED_YESTERDAY_NOT_TODAY
- COMPLETED_EARLIER_NOT_TODAY

Transitions
-----------
complete:   TODAY -> DuplicateCompletionError
            YESTERDAY -> streak + 1
            NEVER / EARLIER -> streak = 1
uncomplete: TODAY -> not completed, last_completed_date cleared
            anything else -> InvalidUncompleteError
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from src.modules.shared.exceptions import DuplicateCompletionError, InvalidUncompleteError

HABIT_VALUE_STEP = 0.25
HABIT_VALUE_CAP = 3.0
HABIT_VALUE_FLOOR = -3.0
STREAK_BONUS_EVERY = 7
STREAK_BONUS_EXP = 5


class HabitState(str, Enum):
    NEVER_COMPLETED = "never_completed"
    COMPLETED_TODAY = "completed_today"
    COMPLETED_YESTERDAY_NOT_TODAY = "completed_yesterday_not_today"
    COMPLETED_EARLIER_NOT_TODAY = "completed_earlier_not_today"


@dataclass(frozen=True)
class HabitProgress:
    """Streak-relevant slice of a habit task."""

    streak: int = 0
    value: float = 0.0
    last_completed_at: Optional[datetime] = None
    completed: bool = False


def utc_day(moment: datetime) -> date:
    """Calendar day of `moment` in UTC; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).date()


def classify(last_completed_at: Optional[datetime], now: datetime) -> HabitState:
    """
    Example:
        >>> classify(None, now)
        <HabitState.NEVER_COMPLETED: 'never_completed'>
    """
    if last_completed_at is None:
        return HabitState.NEVER_COMPLETED

    last_day = utc_day(last_completed_at)
    today = utc_day(now)

    if last_day == today:
        return HabitState.COMPLETED_TODAY
    if last_day == today - timedelta(days=1):
        return HabitState.COMPLETED_YESTERDAY_NOT_TODAY
    # A date in the future (clock skew between writers) counts as "earlier"
    return HabitState.COMPLETED_EARLIER_NOT_TODAY


def clamp_value(value: float) -> float:
    return max(HABIT_VALUE_FLOOR, min(value, HABIT_VALUE_CAP))


def complete(
    progress: HabitProgress,
    now: datetime,
    task_id: Optional[int] = None,
    value_step: float = HABIT_VALUE_STEP,
    value_cap: float = HABIT_VALUE_CAP,
) -> HabitProgress:
    """
    Record today's completion.

    Raises:
        DuplicateCompletionError: Already completed today; nothing changes
    """
    state = classify(progress.last_completed_at, now)

    if state is HabitState.COMPLETED_TODAY:
        raise DuplicateCompletionError(task_id)

    if state is HabitState.COMPLETED_YESTERDAY_NOT_TODAY:
        streak = progress.streak + 1
    else:
        streak = 1

    return replace(
        progress,
        streak=streak,
        value=min(progress.value + value_step, value_cap),
        last_completed_at=now,
        completed=True,
    )


def uncomplete(
    progress: HabitProgress,
    now: datetime,
    task_id: Optional[int] = None,
) -> HabitProgress:
    """
    Undo today's completion.

    The streak is left as-is; the next completion recomputes it from the
    cleared date.

    Raises:
        InvalidUncompleteError: The habit was not completed today
    """
    if classify(progress.last_completed_at, now) is not HabitState.COMPLETED_TODAY:
        raise InvalidUncompleteError(task_id)

    return replace(progress, completed=False, last_completed_at=None)


def streak_bonus(
    streak: int,
    every: int = STREAK_BONUS_EVERY,
    bonus_exp: int = STREAK_BONUS_EXP,
) -> int:
    """
    Extra XP for long streaks: `floor(streak / every) * bonus_exp` once the
    streak passes `every` days.

    Example:
        >>> streak_bonus(7), streak_bonus(8), streak_bonus(14)
        (0, 5, 10)
    """
    if streak <= every:
        return 0
    return (streak // every) * bonus_exp
