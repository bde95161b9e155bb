"""
User stats row.

Schema-only representation of a user's progression (level, XP, energy
balls, counters). All rules live in `src.domain.progression`; services map
this row to the `UserStats` value object and back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class UserStatsRow(Base, IdMixin, TimestampMixin):
    """One row per user, created lazily on first access."""

    __tablename__ = "user_stats"

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )

    # ========================================================================
    # LEVEL & EXPERIENCE
    # ========================================================================

    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    experience_to_next: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    # ========================================================================
    # ENERGY
    # ========================================================================

    energy_balls: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    max_energy_balls: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    last_energy_reset: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Last daily refill; compared by UTC calendar day",
    )

    # ========================================================================
    # COUNTERS
    # ========================================================================

    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
