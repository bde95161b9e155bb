"""
Data store interface.

Purpose
-------
One persistence seam for every service. A `DataStore` opens a unit of work
for a user; the `StoreSession` it yields exposes that user's rows (stats,
tasks, skills, goals and their milestones, activity, pomodoro sessions and
daily battle reports) plus the global user accounts.

Two implementations exist:
- `SqlDataStore`: PostgreSQL through SQLAlchemy, one transaction per unit
  of work, rows locked with SELECT ... FOR UPDATE when asked
- `DemoDataStore`: process-local memory for the demo account

Services never branch on "is this the demo user"; `StoreProvider` picks
the store once.

Design Notes
------------
- Every user-scoped lookup filters by the session's user id, so another
  user's id behaves exactly like a missing one (404, not 403)
- Lists come back newest first
- `add_*` only stages a row; `flush()` assigns ids
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, AsyncContextManager, List, Optional

if TYPE_CHECKING:
    from src.database.models import (
        ActivityLog,
        DailyBattleReport,
        Goal,
        Milestone,
        PomodoroSession,
        Skill,
        TaskRow,
        User,
        UserStatsRow,
    )


class StoreSession(ABC):
    """Row access for one unit of work."""

    def __init__(self, user_id: Optional[str]) -> None:
        self.user_id = user_id

    # ------------------------------------------------------------------ #
    # Users (not user-scoped)
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def add_user(self, user: User) -> User: ...

    # ------------------------------------------------------------------ #
    # Stats
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_stats(self, for_update: bool = False) -> Optional[UserStatsRow]: ...

    @abstractmethod
    def add_stats(self, row: UserStatsRow) -> UserStatsRow: ...

    # ------------------------------------------------------------------ #
    # Tasks
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def list_tasks(self, for_update: bool = False) -> List[TaskRow]: ...

    @abstractmethod
    async def get_task(self, task_id: int, for_update: bool = False) -> Optional[TaskRow]: ...

    @abstractmethod
    def add_task(self, row: TaskRow) -> TaskRow: ...

    @abstractmethod
    async def delete_task(self, row: TaskRow) -> None: ...

    # ------------------------------------------------------------------ #
    # Skills
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def list_skills(self) -> List[Skill]: ...

    @abstractmethod
    async def get_skill(self, skill_id: int, for_update: bool = False) -> Optional[Skill]: ...

    @abstractmethod
    def add_skill(self, row: Skill) -> Skill: ...

    # ------------------------------------------------------------------ #
    # Goals
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def list_goals(self) -> List[Goal]: ...

    @abstractmethod
    async def get_goal(self, goal_id: int, for_update: bool = False) -> Optional[Goal]: ...

    @abstractmethod
    def add_goal(self, row: Goal) -> Goal: ...

    @abstractmethod
    async def delete_goal(self, row: Goal) -> None: ...

    # ------------------------------------------------------------------ #
    # Milestones
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def list_milestones(self, goal_id: Optional[int] = None) -> List[Milestone]:
        """Milestones of one goal, or of every goal when `goal_id` is None, in display order."""

    @abstractmethod
    async def get_milestone(self, milestone_id: int, for_update: bool = False) -> Optional[Milestone]: ...

    @abstractmethod
    def add_milestone(self, row: Milestone) -> Milestone: ...

    @abstractmethod
    async def delete_milestone(self, row: Milestone) -> None: ...

    # ------------------------------------------------------------------ #
    # Activity
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_activity(self, row: ActivityLog) -> ActivityLog: ...

    @abstractmethod
    async def list_activity(self, limit: int = 50) -> List[ActivityLog]: ...

    # ------------------------------------------------------------------ #
    # Pomodoro sessions & battle reports
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_pomodoro_session(self, row: PomodoroSession) -> PomodoroSession: ...

    @abstractmethod
    async def list_pomodoro_sessions(self, limit: int = 50) -> List[PomodoroSession]: ...

    @abstractmethod
    async def get_battle_report(self, day: datetime, for_update: bool = False) -> Optional[DailyBattleReport]:
        """The report whose `date` equals `day` (midnight UTC)."""

    @abstractmethod
    def add_battle_report(self, row: DailyBattleReport) -> DailyBattleReport: ...

    @abstractmethod
    async def list_battle_reports(self, start: datetime, end: datetime) -> List[DailyBattleReport]:
        """Reports with `start <= date <= end`, newest first."""

    @abstractmethod
    async def flush(self) -> None: ...

    def require_user(self) -> str:
        if not self.user_id:
            raise RuntimeError("This store session is not bound to a user")
        return self.user_id


class DataStore(ABC):
    """Factory for units of work."""

    name: str = "abstract"

    @abstractmethod
    def unit_of_work(self, user_id: Optional[str]) -> AsyncContextManager[StoreSession]:
        """
        Open a unit of work for `user_id`.

        Changes are committed when the block exits normally and discarded
        when it raises.
        """
