"""
Activity log row.

Append-only: rows are inserted by the services and never updated or
deleted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class ActivityLog(Base, IdMixin):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_user_date", "user_id", "date"),
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
    skill_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("skills.id", ondelete="SET NULL"),
        nullable=True,
    )

    exp_gained: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="task_complete | habit_complete | task_uncomplete | goal_complete | "
        "goal_pomodoro_complete | skill_levelup",
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "taskId": self.task_id,
            "skillId": self.skill_id,
            "expGained": self.exp_gained,
            "action": self.action,
            "description": self.description,
            "date": self.date.isoformat() if self.date else None,
        }
