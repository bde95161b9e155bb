"""
Skill row.

Skills level on the same curve as user stats, tracked per skill. Six core
skills are created for every user on first access.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, IdMixin, TimestampMixin


class Skill(Base, IdMixin, TimestampMixin):
    __tablename__ = "skills"
    __table_args__ = (
        Index("ix_skills_user_name", "user_id", "name", unique=True),
    )

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    exp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_exp: Mapped[int] = mapped_column(Integer, nullable=False, default=100)

    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#6366F1")
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="fas fa-star")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    skill_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="custom",
        doc="core | custom",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "level": self.level,
            "exp": self.exp,
            "maxExp": self.max_exp,
            "color": self.color,
            "icon": self.icon,
            "category": self.category,
            "skillType": self.skill_type,
        }
