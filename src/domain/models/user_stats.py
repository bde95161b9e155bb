"""
UserStats value object.

Immutable snapshot of a user's progression: level, XP, energy balls and
counters. The engine functions in `src.domain.progression` take a snapshot
and return a new one; services copy the result back onto the ORM row with
`apply_to()` inside the same transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.domain.models.base import DomainValidationError, validate_non_negative, validate_positive

if TYPE_CHECKING:
    from src.database.models.user_stats import UserStatsRow


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_MAX_ENERGY_BALLS = 18
DEFAULT_EXPERIENCE_TO_NEXT = 100


@dataclass(frozen=True)
class UserStats:
    """
    Progression state for one user.

    Invariants
    ----------
    - level >= 1
    - 0 <= experience < experience_to_next
    - 0 <= energy_balls <= max_energy_balls
    """

    user_id: str
    level: int = 1
    experience: int = 0
    experience_to_next: int = DEFAULT_EXPERIENCE_TO_NEXT
    energy_balls: int = DEFAULT_MAX_ENERGY_BALLS
    max_energy_balls: int = DEFAULT_MAX_ENERGY_BALLS
    streak: int = 0
    total_tasks_completed: int = 0
    last_energy_reset: Optional[datetime] = None
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        validate_positive(self.level, "level")
        validate_non_negative(self.experience, "experience")
        validate_positive(self.experience_to_next, "experience_to_next")
        if self.experience >= self.experience_to_next:
            raise DomainValidationError(
                "experience must be below experience_to_next",
                field="experience",
            )
        validate_positive(self.max_energy_balls, "max_energy_balls")
        if not 0 <= self.energy_balls <= self.max_energy_balls:
            raise DomainValidationError(
                f"energy_balls must be within 0..{self.max_energy_balls}, got {self.energy_balls}",
                field="energy_balls",
            )
        validate_non_negative(self.streak, "streak")
        validate_non_negative(self.total_tasks_completed, "total_tasks_completed")

    @classmethod
    def new(
        cls,
        user_id: str,
        max_energy_balls: int = DEFAULT_MAX_ENERGY_BALLS,
        now: Optional[datetime] = None,
    ) -> UserStats:
        """Defaults for a user seen for the first time: level 1, full energy."""
        now = now or _utc_now()
        return cls(
            user_id=user_id,
            energy_balls=max_energy_balls,
            max_energy_balls=max_energy_balls,
            last_energy_reset=now,
            updated_at=now,
        )

    def evolve(self, now: Optional[datetime] = None, **changes: Any) -> UserStats:
        """Copy with `changes` applied and `updated_at` refreshed."""
        return replace(self, updated_at=now or _utc_now(), **changes)

    # ------------------------------------------------------------------ #
    # Row mapping
    # ------------------------------------------------------------------ #

    @classmethod
    def from_row(cls, row: UserStatsRow) -> UserStats:
        """
        Build a snapshot from the ORM row.

        Rows written by older code may hold energy above the cap or XP past
        the threshold; those are clamped here so the invariants hold.
        """
        max_balls = row.max_energy_balls or DEFAULT_MAX_ENERGY_BALLS
        experience_to_next = row.experience_to_next or DEFAULT_EXPERIENCE_TO_NEXT
        return cls(
            user_id=row.user_id,
            level=max(1, row.level or 1),
            experience=min(max(0, row.experience or 0), experience_to_next - 1),
            experience_to_next=experience_to_next,
            energy_balls=min(max(0, row.energy_balls or 0), max_balls),
            max_energy_balls=max_balls,
            streak=max(0, row.streak or 0),
            total_tasks_completed=max(0, row.total_tasks_completed or 0),
            last_energy_reset=row.last_energy_reset,
            updated_at=row.updated_at or _utc_now(),
        )

    def apply_to(self, row: UserStatsRow) -> UserStatsRow:
        row.user_id = self.user_id
        row.level = self.level
        row.experience = self.experience
        row.experience_to_next = self.experience_to_next
        row.energy_balls = self.energy_balls
        row.max_energy_balls = self.max_energy_balls
        row.streak = self.streak
        row.total_tasks_completed = self.total_tasks_completed
        row.last_energy_reset = self.last_energy_reset
        row.updated_at = self.updated_at
        return row

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "level": self.level,
            "experience": self.experience,
            "experienceToNext": self.experience_to_next,
            "energyBalls": self.energy_balls,
            "maxEnergyBalls": self.max_energy_balls,
            "streak": self.streak,
            "totalTasksCompleted": self.total_tasks_completed,
            "lastEnergyReset": self.last_energy_reset.isoformat() if self.last_energy_reset else None,
            "updatedAt": self.updated_at.isoformat(),
        }
