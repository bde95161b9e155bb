"""
Milestone row.

An ordered checkpoint inside a goal. The goal's `progress` is the share of
its milestones that are completed, recomputed whenever one changes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, utc_now


class Milestone(Base, IdMixin):
    __tablename__ = "milestones"
    __table_args__ = (
        Index("ix_milestones_goal_position", "goal_id", "position"),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    goal_id: Mapped[int] = mapped_column(
        ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, doc="Display order within the goal")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "goalId": self.goal_id,
            "title": self.title,
            "description": self.description,
            "completed": bool(self.completed),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "order": self.position,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
