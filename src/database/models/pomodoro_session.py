"""
Pomodoro session row.

One focus session, finished or abandoned. Sessions that completed a task
or paid a goal reward link to it; deleting the task or goal keeps the
session and clears the link.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class PomodoroSession(Base, IdMixin):
    __tablename__ = "pomodoro_sessions"
    __table_args__ = (
        Index("ix_pomodoro_sessions_user_start", "user_id", "start_time"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    task_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    goal_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("goals.id", ondelete="SET NULL"),
        nullable=True,
    )

    work_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=25, doc="Minutes")
    rest_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=5, doc="Minutes")
    cycles_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_energy_balls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "taskId": self.task_id,
            "goalId": self.goal_id,
            "workDuration": self.work_duration,
            "restDuration": self.rest_duration,
            "cyclesCompleted": self.cycles_completed,
            "actualEnergyBalls": self.actual_energy_balls,
            "completed": bool(self.completed),
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
