"""
In-memory demo store.

Backs the demo account (and the unit tests): no database, process-local,
gone on restart. Rows are ordinary transient ORM instances so services and
serializers treat both stores identically.

A unit of work holds the store lock for its duration and snapshots the
user's rows on entry; if the block raises, the snapshot is restored, which
gives the same all-or-nothing outcome as the SQL transaction.
"""

from __future__ import annotations

import asyncio
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

from src.core.database.base import Base, utc_now
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

logger = get_logger(__name__)


DEMO_TASKS: List[Dict[str, Any]] = [
    {
        "title": "完成 React 教程",
        "description": "学习 React 基础知识",
        "category": "todo",
        "difficulty": "medium",
        "exp_reward": 20,
        "required_energy_balls": 2,
        "estimated_duration": 30,
    },
    {
        "title": "每天冥想10分钟",
        "description": "保持情绪稳定",
        "category": "habit",
        "difficulty": "easy",
        "exp_reward": 20,
        "required_energy_balls": 1,
        "estimated_duration": 10,
    },
    {
        "title": "阅读30分钟",
        "description": None,
        "category": "daily",
        "difficulty": "easy",
        "exp_reward": 10,
        "required_energy_balls": 2,
        "estimated_duration": 30,
    },
]

DEMO_GOALS: List[Dict[str, Any]] = [
    {
        "title": "学习 React Native",
        "description": "开发一个移动应用",
        "progress": 0.3,
        "skill_tags": ["心智成长力"],
    },
]


def _column_defaults(row: Base) -> None:
    """Fill unset columns with their scalar or callable defaults."""
    for column in row.__table__.columns:
        if column.primary_key or getattr(row, column.key, None) is not None:
            continue
        default = column.default
        if default is None:
            continue
        if default.is_scalar:
            setattr(row, column.key, default.arg)
        elif default.is_callable:
            setattr(row, column.key, default.arg(None))


def _row_values(row: Base) -> Dict[str, Any]:
    values = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key, None)
        values[column.key] = list(value) if isinstance(value, list) else value
    return values


@dataclass
class _UserState:
    stats: Optional[UserStatsRow] = None
    tasks: Dict[int, TaskRow] = field(default_factory=dict)
    skills: Dict[int, Skill] = field(default_factory=dict)
    goals: Dict[int, Goal] = field(default_factory=dict)
    activity: List[ActivityLog] = field(default_factory=list)
    milestones: Dict[int, Milestone] = field(default_factory=dict)
    sessions: List[PomodoroSession] = field(default_factory=list)
    reports: Dict[int, DailyBattleReport] = field(default_factory=dict)


_Snapshot = Tuple[Dict[str, User], Optional[_UserState], List[Tuple[Base, Dict[str, Any]]]]


class DemoStoreSession(StoreSession):
    def __init__(self, store: DemoDataStore, user_id: Optional[str]) -> None:
        super().__init__(user_id)
        self._store = store

    @property
    def _state(self) -> _UserState:
        return self._store.state_for(self.require_user())

    def _stage(self, row: Base, kind: str) -> None:
        _column_defaults(row)
        if getattr(row, "id", None) is None:
            row.id = self._store.next_id(kind)
        if self.user_id is not None and hasattr(row, "user_id") and row.user_id is None:
            row.user_id = self.user_id

    # Users

    async def get_user(self, user_id: str) -> Optional[User]:
        return self._store.users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self._store.users.values() if u.email == email), None)

    def add_user(self, user: User) -> User:
        _column_defaults(user)
        self._store.users[user.id] = user
        return user

    # Stats

    async def get_stats(self, for_update: bool = False) -> Optional[UserStatsRow]:
        return self._state.stats

    def add_stats(self, row: UserStatsRow) -> UserStatsRow:
        self._stage(row, "user_stats")
        self._state.stats = row
        return row

    # Tasks

    async def list_tasks(self, for_update: bool = False) -> List[TaskRow]:
        return sorted(self._state.tasks.values(), key=lambda t: (t.created_at, t.id), reverse=True)

    async def get_task(self, task_id: int, for_update: bool = False) -> Optional[TaskRow]:
        return self._state.tasks.get(task_id)

    def add_task(self, row: TaskRow) -> TaskRow:
        self._stage(row, "tasks")
        self._state.tasks[row.id] = row
        return row

    async def delete_task(self, row: TaskRow) -> None:
        state = self._state
        state.tasks.pop(row.id, None)
        for session in state.sessions:
            if session.task_id == row.id:
                session.task_id = None

    # Skills

    async def list_skills(self) -> List[Skill]:
        return sorted(self._state.skills.values(), key=lambda s: s.id)

    async def get_skill(self, skill_id: int, for_update: bool = False) -> Optional[Skill]:
        return self._state.skills.get(skill_id)

    def add_skill(self, row: Skill) -> Skill:
        self._stage(row, "skills")
        self._state.skills[row.id] = row
        return row

    # Goals

    async def list_goals(self) -> List[Goal]:
        return sorted(self._state.goals.values(), key=lambda g: (g.created_at, g.id), reverse=True)

    async def get_goal(self, goal_id: int, for_update: bool = False) -> Optional[Goal]:
        return self._state.goals.get(goal_id)

    def add_goal(self, row: Goal) -> Goal:
        self._stage(row, "goals")
        self._state.goals[row.id] = row
        return row

    async def delete_goal(self, row: Goal) -> None:
        state = self._state
        state.goals.pop(row.id, None)
        for task in state.tasks.values():
            if task.goal_id == row.id:
                task.goal_id = None
        for session in state.sessions:
            if session.goal_id == row.id:
                session.goal_id = None
        for milestone_id in [m.id for m in state.milestones.values() if m.goal_id == row.id]:
            del state.milestones[milestone_id]

    # Milestones

    async def list_milestones(self, goal_id: Optional[int] = None) -> List[Milestone]:
        rows = [m for m in self._state.milestones.values() if goal_id is None or m.goal_id == goal_id]
        return sorted(rows, key=lambda m: (m.goal_id, m.position, m.id))

    async def get_milestone(self, milestone_id: int, for_update: bool = False) -> Optional[Milestone]:
        return self._state.milestones.get(milestone_id)

    def add_milestone(self, row: Milestone) -> Milestone:
        self._stage(row, "milestones")
        self._state.milestones[row.id] = row
        return row

    async def delete_milestone(self, row: Milestone) -> None:
        self._state.milestones.pop(row.id, None)

    # Activity

    def add_activity(self, row: ActivityLog) -> ActivityLog:
        self._stage(row, "activity_logs")
        self._state.activity.append(row)
        return row

    async def list_activity(self, limit: int = 50) -> List[ActivityLog]:
        ordered = sorted(self._state.activity, key=lambda a: (a.date, a.id), reverse=True)
        return ordered[:limit]

    # Pomodoro sessions & battle reports

    def add_pomodoro_session(self, row: PomodoroSession) -> PomodoroSession:
        self._stage(row, "pomodoro_sessions")
        self._state.sessions.append(row)
        return row

    async def list_pomodoro_sessions(self, limit: int = 50) -> List[PomodoroSession]:
        ordered = sorted(self._state.sessions, key=lambda s: (s.start_time, s.id), reverse=True)
        return ordered[:limit]

    async def get_battle_report(self, day: datetime, for_update: bool = False) -> Optional[DailyBattleReport]:
        return next((r for r in self._state.reports.values() if r.date == day), None)

    def add_battle_report(self, row: DailyBattleReport) -> DailyBattleReport:
        self._stage(row, "daily_battle_reports")
        self._state.reports[row.id] = row
        return row

    async def list_battle_reports(self, start: datetime, end: datetime) -> List[DailyBattleReport]:
        rows = [r for r in self._state.reports.values() if start <= r.date <= end]
        return sorted(rows, key=lambda r: r.date, reverse=True)

    async def flush(self) -> None:
        """Ids are assigned when rows are staged; nothing to do."""


class DemoDataStore(DataStore):
    """
    Process-local store.

    Args:
        seeded_users: User ids that get the demo tasks and goal on first access
    """

    name = "demo"

    def __init__(self, seeded_users: Iterable[str] = ()) -> None:
        self.users: Dict[str, User] = {}
        self._states: Dict[str, _UserState] = {}
        self._counters: Dict[str, Iterable[int]] = {}
        self._seeded_users = set(seeded_users)
        self._lock = asyncio.Lock()

    def next_id(self, kind: str) -> int:
        counter = self._counters.setdefault(kind, itertools.count(1))
        return next(counter)  # type: ignore[call-overload]

    def state_for(self, user_id: str) -> _UserState:
        state = self._states.get(user_id)
        if state is None:
            state = _UserState()
            self._states[user_id] = state
            if user_id in self._seeded_users:
                self._seed(user_id, state)
        return state

    def _seed(self, user_id: str, state: _UserState) -> None:
        now = utc_now()
        # Oldest first so the first entry lists last (newest-first order)
        for offset, values in enumerate(DEMO_TASKS):
            task = TaskRow(user_id=user_id, **values)
            task.created_at = now - timedelta(minutes=len(DEMO_TASKS) - offset)
            _column_defaults(task)
            task.id = self.next_id("tasks")
            state.tasks[task.id] = task
        for values in DEMO_GOALS:
            goal = Goal(user_id=user_id, **values)
            _column_defaults(goal)
            goal.id = self.next_id("goals")
            state.goals[goal.id] = goal

        logger.info(
            "Seeded demo data",
            extra={"user_id": user_id, "tasks": len(DEMO_TASKS), "goals": len(DEMO_GOALS)},
        )

    def reset(self) -> None:
        self.users.clear()
        self._states.clear()
        self._counters.clear()

    # ------------------------------------------------------------------ #
    # Snapshot / rollback
    # ------------------------------------------------------------------ #

    def _snapshot(self, user_id: Optional[str]) -> _Snapshot:
        users = dict(self.users)
        values: List[Tuple[Base, Dict[str, Any]]] = [(u, _row_values(u)) for u in users.values()]
        state_copy: Optional[_UserState] = None

        if user_id is not None:
            state = self.state_for(user_id)
            state_copy = _UserState(
                stats=state.stats,
                tasks=dict(state.tasks),
                skills=dict(state.skills),
                goals=dict(state.goals),
                activity=list(state.activity),
                milestones=dict(state.milestones),
                sessions=list(state.sessions),
                reports=dict(state.reports),
            )
            rows: List[Base] = [
                *state.tasks.values(),
                *state.skills.values(),
                *state.goals.values(),
                *state.milestones.values(),
                *state.sessions,
                *state.reports.values(),
            ]
            if state.stats is not None:
                rows.append(state.stats)
            values.extend((row, _row_values(row)) for row in rows)

        return users, state_copy, values

    def _restore(self, user_id: Optional[str], snapshot: _Snapshot) -> None:
        users, state_copy, values = snapshot
        self.users = users
        if user_id is not None and state_copy is not None:
            self._states[user_id] = state_copy
        for row, row_values in values:
            for key, value in row_values.items():
                setattr(row, key, value)

    @asynccontextmanager
    async def unit_of_work(self, user_id: Optional[str]) -> AsyncIterator[StoreSession]:
        async with self._lock:
            snapshot = self._snapshot(user_id)
            try:
                yield DemoStoreSession(self, user_id)
            except BaseException:
                self._restore(user_id, snapshot)
                logger.debug("Demo unit of work rolled back", extra={"user_id": user_id})
                raise
