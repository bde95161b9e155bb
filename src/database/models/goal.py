"""
Goal row.

A long-running objective. Completing it awards `exp_reward` once;
pomodoro sessions on it award `pomodoro_exp_reward` each.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Goal(Base, IdMixin, TimestampMixin):
    __tablename__ = "goals"

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, doc="0..1")
    target_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    exp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    pomodoro_exp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    required_energy_balls: Mapped[int] = mapped_column(Integer, nullable=False, default=4)

    skill_tags: Mapped[List[str]] = mapped_column(JSONB, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "description": self.description,
            "completed": bool(self.completed),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "progress": self.progress,
            "targetDate": self.target_date.isoformat() if self.target_date else None,
            "expReward": self.exp_reward,
            "pomodoroExpReward": self.pomodoro_exp_reward,
            "requiredEnergyBalls": self.required_energy_balls,
            "skillTags": list(self.skill_tags or []),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
