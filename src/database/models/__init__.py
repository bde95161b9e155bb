"""
Database Models Package
========================

SQLAlchemy ORM models for Level Up Solo.

- Schema-only, no business logic
- `Mapped[]` syntax with `mapped_column()`
- Mixins from `src.core.database.base` (IdMixin, TimestampMixin)
- The `Row` suffix marks tables whose rules live in a domain model of the
  same name (`UserStats`, `Task` in `src.domain.models`)
"""

from src.core.database.base import Base

from .activity_log import ActivityLog
from .battle_report import DailyBattleReport
from .goal import Goal
from .milestone import Milestone
from .pomodoro_session import PomodoroSession
from .skill import Skill
from .task import TaskRow
from .user import User
from .user_stats import UserStatsRow

__all__ = [
    "Base",
    "User",
    "UserStatsRow",
    "TaskRow",
    "Skill",
    "Goal",
    "Milestone",
    "ActivityLog",
    "PomodoroSession",
    "DailyBattleReport",
]
