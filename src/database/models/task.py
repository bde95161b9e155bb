"""
Task row.

Schema-only. Covers the three task categories (habit, daily, todo); the
habit columns are unused for todos.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class TaskRow(Base, IdMixin, TimestampMixin):
    """A user's task, habit or daily."""

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_category", "user_id", "category"),
        Index("ix_tasks_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="todo",
        doc="habit | daily | todo",
    )
    difficulty: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="medium",
        doc="trivial | easy | medium | hard",
    )

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ========================================================================
    # REWARD & COST
    # ========================================================================

    exp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    required_energy_balls: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    estimated_duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=25,
        doc="Minutes",
    )
    actual_duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Focused minutes accumulated from pomodoro sessions",
    )

    # ========================================================================
    # HABIT TRACKING
    # ========================================================================

    habit_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    habit_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_completed_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ========================================================================
    # LINKS
    # ========================================================================

    skill_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("skills.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    goal_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("goals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    tags: Mapped[List[str]] = mapped_column(JSONB, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "difficulty": self.difficulty,
            "completed": bool(self.completed),
            "completedAt": _iso(self.completed_at),
            "expReward": self.exp_reward,
            "requiredEnergyBalls": self.required_energy_balls,
            "estimatedDuration": self.estimated_duration,
            "actualDuration": self.actual_duration,
            "habitStreak": self.habit_streak,
            "habitValue": self.habit_value,
            "lastCompletedDate": _iso(self.last_completed_date),
            "skillId": self.skill_id,
            "goalId": self.goal_id,
            "tags": list(self.tags or []),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
