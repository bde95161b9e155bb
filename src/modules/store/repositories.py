"""
Per-table repositories used by the SQL data store.

Each is a thin `BaseRepository` subclass adding the user-scoped queries
the store needs; ownership is enforced by filtering on `user_id`.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

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
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class UserRepository(BaseRepository[User]):
    async def by_email(self, session: AsyncSession, email: str) -> Optional[User]:
        return await self.find_one_where(session, User.email == email)


class UserStatsRepository(BaseRepository[UserStatsRow]):
    async def for_user(
        self, session: AsyncSession, user_id: str, for_update: bool = False
    ) -> Optional[UserStatsRow]:
        return await self.find_one_where(
            session, UserStatsRow.user_id == user_id, for_update=for_update
        )


class TaskRepository(BaseRepository[TaskRow]):
    async def for_user(
        self, session: AsyncSession, user_id: str, for_update: bool = False
    ) -> List[TaskRow]:
        return await self.find_many_where(
            session,
            TaskRow.user_id == user_id,
            order_by=[TaskRow.created_at.desc(), TaskRow.id.desc()],
            for_update=for_update,
        )

    async def owned(
        self, session: AsyncSession, user_id: str, task_id: int, for_update: bool = False
    ) -> Optional[TaskRow]:
        return await self.find_one_where(
            session,
            TaskRow.id == task_id,
            TaskRow.user_id == user_id,
            for_update=for_update,
        )


class SkillRepository(BaseRepository[Skill]):
    async def for_user(self, session: AsyncSession, user_id: str) -> List[Skill]:
        return await self.find_many_where(
            session, Skill.user_id == user_id, order_by=[Skill.id.asc()]
        )

    async def owned(
        self, session: AsyncSession, user_id: str, skill_id: int, for_update: bool = False
    ) -> Optional[Skill]:
        return await self.find_one_where(
            session, Skill.id == skill_id, Skill.user_id == user_id, for_update=for_update
        )


class GoalRepository(BaseRepository[Goal]):
    async def for_user(self, session: AsyncSession, user_id: str) -> List[Goal]:
        return await self.find_many_where(
            session,
            Goal.user_id == user_id,
            order_by=[Goal.created_at.desc(), Goal.id.desc()],
        )

    async def owned(
        self, session: AsyncSession, user_id: str, goal_id: int, for_update: bool = False
    ) -> Optional[Goal]:
        return await self.find_one_where(
            session, Goal.id == goal_id, Goal.user_id == user_id, for_update=for_update
        )


class MilestoneRepository(BaseRepository[Milestone]):
    async def for_user(
        self, session: AsyncSession, user_id: str, goal_id: Optional[int] = None
    ) -> List[Milestone]:
        conditions = [Milestone.user_id == user_id]
        if goal_id is not None:
            conditions.append(Milestone.goal_id == goal_id)
        return await self.find_many_where(
            session,
            *conditions,
            order_by=[Milestone.goal_id.asc(), Milestone.position.asc(), Milestone.id.asc()],
        )

    async def owned(
        self, session: AsyncSession, user_id: str, milestone_id: int, for_update: bool = False
    ) -> Optional[Milestone]:
        return await self.find_one_where(
            session, Milestone.id == milestone_id, Milestone.user_id == user_id, for_update=for_update
        )


class PomodoroSessionRepository(BaseRepository[PomodoroSession]):
    async def recent(self, session: AsyncSession, user_id: str, limit: int) -> List[PomodoroSession]:
        return await self.find_many_where(
            session,
            PomodoroSession.user_id == user_id,
            order_by=[PomodoroSession.start_time.desc(), PomodoroSession.id.desc()],
            limit=limit,
        )


class BattleReportRepository(BaseRepository[DailyBattleReport]):
    async def for_day(
        self, session: AsyncSession, user_id: str, day: datetime, for_update: bool = False
    ) -> Optional[DailyBattleReport]:
        return await self.find_one_where(
            session,
            DailyBattleReport.user_id == user_id,
            DailyBattleReport.date == day,
            for_update=for_update,
        )

    async def between(
        self, session: AsyncSession, user_id: str, start: datetime, end: datetime
    ) -> List[DailyBattleReport]:
        return await self.find_many_where(
            session,
            DailyBattleReport.user_id == user_id,
            DailyBattleReport.date >= start,
            DailyBattleReport.date <= end,
            order_by=[DailyBattleReport.date.desc()],
        )


class ActivityLogRepository(BaseRepository[ActivityLog]):
    async def recent(self, session: AsyncSession, user_id: str, limit: int) -> List[ActivityLog]:
        return await self.find_many_where(
            session,
            ActivityLog.user_id == user_id,
            order_by=[ActivityLog.date.desc(), ActivityLog.id.desc()],
            limit=limit,
        )
