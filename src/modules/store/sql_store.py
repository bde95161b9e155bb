"""
SQL data store.

Each unit of work is one `DatabaseService.get_transaction()`: committed on
normal exit, rolled back when the block raises. Write paths pass
`for_update=True` so two concurrent completions of the same task queue on
the row lock instead of overwriting each other.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, AsyncIterator, List, Optional

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
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
from src.modules.store.base import DataStore, StoreSession
from src.modules.store.repositories import (
    ActivityLogRepository,
    BattleReportRepository,
    GoalRepository,
    MilestoneRepository,
    PomodoroSessionRepository,
    SkillRepository,
    TaskRepository,
    UserRepository,
    UserStatsRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class _Repositories:
    def __init__(self) -> None:
        self.users = UserRepository(User, get_logger(f"{__name__}.UserRepository"))
        self.stats = UserStatsRepository(UserStatsRow, get_logger(f"{__name__}.UserStatsRepository"))
        self.tasks = TaskRepository(TaskRow, get_logger(f"{__name__}.TaskRepository"))
        self.skills = SkillRepository(Skill, get_logger(f"{__name__}.SkillRepository"))
        self.goals = GoalRepository(Goal, get_logger(f"{__name__}.GoalRepository"))
        self.activity = ActivityLogRepository(ActivityLog, get_logger(f"{__name__}.ActivityLogRepository"))
        self.milestones = MilestoneRepository(Milestone, get_logger(f"{__name__}.MilestoneRepository"))
        self.sessions = PomodoroSessionRepository(PomodoroSession, get_logger(f"{__name__}.PomodoroSessionRepository"))
        self.reports = BattleReportRepository(DailyBattleReport, get_logger(f"{__name__}.BattleReportRepository"))


class SqlStoreSession(StoreSession):
    def __init__(self, session: AsyncSession, user_id: Optional[str], repos: _Repositories) -> None:
        super().__init__(user_id)
        self.session = session
        self._repos = repos

    # Users

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self._repos.users.get(self.session, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self._repos.users.by_email(self.session, email)

    def add_user(self, user: User) -> User:
        return self._repos.users.add(self.session, user)

    # Stats

    async def get_stats(self, for_update: bool = False) -> Optional[UserStatsRow]:
        return await self._repos.stats.for_user(self.session, self.require_user(), for_update)

    def add_stats(self, row: UserStatsRow) -> UserStatsRow:
        return self._repos.stats.add(self.session, row)

    # Tasks

    async def list_tasks(self, for_update: bool = False) -> List[TaskRow]:
        return await self._repos.tasks.for_user(self.session, self.require_user(), for_update)

    async def get_task(self, task_id: int, for_update: bool = False) -> Optional[TaskRow]:
        return await self._repos.tasks.owned(self.session, self.require_user(), task_id, for_update)

    def add_task(self, row: TaskRow) -> TaskRow:
        return self._repos.tasks.add(self.session, row)

    async def delete_task(self, row: TaskRow) -> None:
        await self._repos.tasks.delete(self.session, row)

    # Skills

    async def list_skills(self) -> List[Skill]:
        return await self._repos.skills.for_user(self.session, self.require_user())

    async def get_skill(self, skill_id: int, for_update: bool = False) -> Optional[Skill]:
        return await self._repos.skills.owned(self.session, self.require_user(), skill_id, for_update)

    def add_skill(self, row: Skill) -> Skill:
        return self._repos.skills.add(self.session, row)

    # Goals

    async def list_goals(self) -> List[Goal]:
        return await self._repos.goals.for_user(self.session, self.require_user())

    async def get_goal(self, goal_id: int, for_update: bool = False) -> Optional[Goal]:
        return await self._repos.goals.owned(self.session, self.require_user(), goal_id, for_update)

    def add_goal(self, row: Goal) -> Goal:
        return self._repos.goals.add(self.session, row)

    async def delete_goal(self, row: Goal) -> None:
        # tasks.goal_id and pomodoro_sessions.goal_id are ON DELETE SET NULL,
        # milestones.goal_id is ON DELETE CASCADE
        await self._repos.goals.delete(self.session, row)

    # Milestones

    async def list_milestones(self, goal_id: Optional[int] = None) -> List[Milestone]:
        return await self._repos.milestones.for_user(self.session, self.require_user(), goal_id)

    async def get_milestone(self, milestone_id: int, for_update: bool = False) -> Optional[Milestone]:
        return await self._repos.milestones.owned(self.session, self.require_user(), milestone_id, for_update)

    def add_milestone(self, row: Milestone) -> Milestone:
        return self._repos.milestones.add(self.session, row)

    async def delete_milestone(self, row: Milestone) -> None:
        await self._repos.milestones.delete(self.session, row)

    # Activity

    def add_activity(self, row: ActivityLog) -> ActivityLog:
        return self._repos.activity.add(self.session, row)

    async def list_activity(self, limit: int = 50) -> List[ActivityLog]:
        return await self._repos.activity.recent(self.session, self.require_user(), limit)

    # Pomodoro sessions & battle reports

    def add_pomodoro_session(self, row: PomodoroSession) -> PomodoroSession:
        return self._repos.sessions.add(self.session, row)

    async def list_pomodoro_sessions(self, limit: int = 50) -> List[PomodoroSession]:
        return await self._repos.sessions.recent(self.session, self.require_user(), limit)

    async def get_battle_report(self, day: datetime, for_update: bool = False) -> Optional[DailyBattleReport]:
        return await self._repos.reports.for_day(self.session, self.require_user(), day, for_update)

    def add_battle_report(self, row: DailyBattleReport) -> DailyBattleReport:
        return self._repos.reports.add(self.session, row)

    async def list_battle_reports(self, start: datetime, end: datetime) -> List[DailyBattleReport]:
        return await self._repos.reports.between(self.session, self.require_user(), start, end)

    async def flush(self) -> None:
        await self.session.flush()


class SqlDataStore(DataStore):
    """PostgreSQL-backed store; requires `DatabaseService.initialize()`."""

    name = "sql"

    def __init__(self) -> None:
        self._repos = _Repositories()

    @asynccontextmanager
    async def unit_of_work(self, user_id: Optional[str]) -> AsyncIterator[StoreSession]:
        async with DatabaseService.get_transaction() as session:
            yield SqlStoreSession(session, user_id, self._repos)
