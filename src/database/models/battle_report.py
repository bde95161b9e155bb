"""
Daily battle report row.

Per-user, per-UTC-day totals of focused time, energy spent, completions
and pomodoro cycles, with one `task_details` entry per contribution.
`date` is always midnight UTC of the day it covers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class DailyBattleReport(Base, IdMixin, TimestampMixin):
    __tablename__ = "daily_battle_reports"
    __table_args__ = (
        Index("ix_daily_battle_reports_user_date", "user_id", "date", unique=True),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    total_battle_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0, doc="Minutes")
    energy_balls_consumed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tasks_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pomodoro_cycles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    task_details: Mapped[List[Dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "date": self.date.date().isoformat() if self.date else None,
            "totalBattleTime": self.total_battle_time,
            "energyBallsConsumed": self.energy_balls_consumed,
            "tasksCompleted": self.tasks_completed,
            "pomodoroCycles": self.pomodoro_cycles,
            "taskDetails": [dict(entry) for entry in self.task_details or []],
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
