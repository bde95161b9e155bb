"""
Battle Report Service
=====================

Purpose
-------
Focus history: one `PomodoroSession` row per focus session and one
`DailyBattleReport` per user per UTC day summing what was fought that day
(focused minutes, energy balls spent, completions, pomodoro cycles).

Task and goal flows call `record_session` / `record_battle` inside their
own unit of work, after the user's stats row is locked, so the report
update commits or rolls back with the completion that caused it and two
writers never race on creating the same day's row.

Domain
------
- A report's `date` is midnight UTC of the day it covers
- Undoing a completion takes its energy and completion count back out of
  the report for the day it was completed; focused minutes stay
- Summaries average over days that have a report, rounded to integers

Events
------
- pomodoro.session_recorded (sessions logged without a completion)
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from src.core.database.base import utc_now
from src.core.event.types import POMODORO_SESSION_RECORDED
from src.core.validation.input_validator import InputValidator
from src.database.models import DailyBattleReport, PomodoroSession
from src.domain.progression.habit import utc_day
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.stats.service import StatsService
    from src.modules.store.base import StoreSession
    from src.modules.store.provider import StoreProvider

PendingEvent = Tuple[str, Dict[str, Any]]

MAX_SESSION_MINUTES = 240
MAX_SESSION_LIMIT = 200
MAX_SUMMARY_DAYS = 366


def day_start(moment: datetime) -> datetime:
    """
    Midnight UTC of the calendar day containing `moment`.

    Example:
        >>> day_start(datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)).isoformat()
        '2026-03-01T00:00:00+00:00'
    """
    return datetime.combine(utc_day(moment), time.min, tzinfo=timezone.utc)


def parse_day(value: Any, field_name: str) -> Optional[datetime]:
    """`YYYY-MM-DD` (or a full ISO timestamp) to midnight UTC; blank is None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return day_start(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return day_start(datetime.fromisoformat(text))
    except ValueError:
        raise ValidationError(field_name, f"Invalid date '{value}'")


def empty_report(day: datetime) -> Dict[str, Any]:
    return {
        "id": None,
        "date": day.date().isoformat(),
        "totalBattleTime": 0,
        "energyBallsConsumed": 0,
        "tasksCompleted": 0,
        "pomodoroCycles": 0,
        "taskDetails": [],
    }


class BattleReportService(BaseService):
    """
    Public Methods
    --------------
    - record_session() / record_battle() / revert_completion() -> in-UoW helpers
    - log_session() -> Record a focus session that completed nothing
    - list_sessions()
    - get_daily_report() -> One day, zeros when nothing happened
    - get_summary() -> Totals and averages over a date range
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
        stats: StatsService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores
        self._stats = stats

    # ========================================================================
    # IN-UOW HELPERS
    # ========================================================================

    def record_session(
        self,
        uow: StoreSession,
        now: datetime,
        minutes: int,
        energy_balls: int = 0,
        cycles: int = 1,
        completed: bool = True,
        rest_minutes: Optional[int] = None,
        task_id: Optional[int] = None,
        goal_id: Optional[int] = None,
    ) -> PomodoroSession:
        """Append a session that ended at `now` after `minutes` of focus."""
        if rest_minutes is None:
            rest_minutes = self.get_config_int("pomodoro.rest_minutes", 5)
        return uow.add_pomodoro_session(
            PomodoroSession(
                user_id=uow.require_user(),
                task_id=task_id,
                goal_id=goal_id,
                work_duration=minutes,
                rest_duration=rest_minutes,
                cycles_completed=cycles,
                actual_energy_balls=energy_balls,
                completed=completed,
                start_time=now - timedelta(minutes=minutes),
                end_time=now,
                created_at=now,
            )
        )

    async def _report_for_update(self, uow: StoreSession, day: datetime, now: datetime) -> DailyBattleReport:
        report = await uow.get_battle_report(day, for_update=True)
        if report is None:
            report = uow.add_battle_report(
                DailyBattleReport(
                    user_id=uow.require_user(),
                    date=day,
                    total_battle_time=0,
                    energy_balls_consumed=0,
                    tasks_completed=0,
                    pomodoro_cycles=0,
                    task_details=[],
                    created_at=now,
                    updated_at=now,
                )
            )
        return report

    async def record_battle(
        self,
        uow: StoreSession,
        now: datetime,
        title: str,
        battle_minutes: int = 0,
        energy_balls: int = 0,
        task_completed: bool = False,
        cycles: int = 0,
        task_id: Optional[int] = None,
        goal_id: Optional[int] = None,
    ) -> DailyBattleReport:
        """Add one contribution to today's report, creating the row on first use."""
        report = await self._report_for_update(uow, day_start(now), now)

        report.total_battle_time += battle_minutes
        report.energy_balls_consumed += energy_balls
        report.tasks_completed += 1 if task_completed else 0
        report.pomodoro_cycles += cycles
        # Reassigned, not appended: JSONB columns only track replacement
        report.task_details = [
            *(report.task_details or []),
            {
                "taskId": task_id,
                "goalId": goal_id,
                "taskTitle": title,
                "battleTime": battle_minutes,
                "energyBalls": energy_balls,
                "cycles": cycles,
                "completed": task_completed,
                "at": now.isoformat(),
            },
        ]
        report.updated_at = now
        return report

    async def revert_completion(
        self,
        uow: StoreSession,
        completed_at: Optional[datetime],
        task_id: int,
        energy_balls: int,
        now: datetime,
    ) -> Optional[DailyBattleReport]:
        """Take an undone completion back out of the report of the day it happened."""
        if completed_at is None:
            return None
        report = await uow.get_battle_report(day_start(completed_at), for_update=True)
        if report is None:
            return None

        report.energy_balls_consumed = max(0, report.energy_balls_consumed - energy_balls)
        report.tasks_completed = max(0, report.tasks_completed - 1)

        details = [dict(entry) for entry in report.task_details or []]
        for entry in reversed(details):
            if entry.get("taskId") == task_id and entry.get("completed"):
                entry["completed"] = False
                entry["energyBalls"] = 0
                break
        report.task_details = details
        report.updated_at = now
        return report

    # ========================================================================
    # SESSIONS
    # ========================================================================

    async def log_session(
        self, user_id: str, data: Mapping[str, Any], now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Record a focus session that did not complete anything, e.g. one
        abandoned halfway or spent on no particular task.

        Accepted fields: workDuration (required), restDuration,
        cyclesCompleted, taskId, goalId.

        Returns:
            {session, report}

        Raises:
            ValidationError: Missing or out-of-range durations
            NotFoundError: taskId / goalId not owned by the user
        """
        user_id = InputValidator.validate_user_id(user_id)
        minutes = InputValidator.validate_positive_integer(
            data.get("workDuration"), "workDuration", max_value=MAX_SESSION_MINUTES
        )
        rest = InputValidator.validate_optional_integer(data.get("restDuration"), "restDuration", 0, 60)
        cycles = InputValidator.validate_optional_integer(data.get("cyclesCompleted"), "cyclesCompleted", 0, 50)
        task_id = InputValidator.validate_optional_integer(data.get("taskId"), "taskId", min_value=1)
        goal_id = InputValidator.validate_optional_integer(data.get("goalId"), "goalId", min_value=1)
        cycles = 0 if cycles is None else cycles
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("log_session", user_id=user_id, minutes=minutes, task_id=task_id, goal_id=goal_id)

        async with self._stores.unit_of_work(user_id) as uow:
            title = "自由专注"
            if task_id is not None:
                task = await uow.get_task(task_id)
                if task is None:
                    raise NotFoundError("Task", task_id)
                title = task.title
            if goal_id is not None:
                goal = await uow.get_goal(goal_id)
                if goal is None:
                    raise NotFoundError("Goal", goal_id)
                title = goal.title if task_id is None else title

            # Taking the stats lock serializes report writers for this user
            await self._stats.load_for_update(uow, now, pending)

            session = self.record_session(
                uow,
                now,
                minutes,
                cycles=cycles,
                completed=False,
                rest_minutes=rest,
                task_id=task_id,
                goal_id=goal_id,
            )
            report = await self.record_battle(
                uow, now, title, battle_minutes=minutes, cycles=cycles, task_id=task_id, goal_id=goal_id
            )
            await uow.flush()
            result = {"session": session.to_dict(), "report": report.to_dict()}

        pending.append(
            (
                POMODORO_SESSION_RECORDED,
                {"user_id": user_id, "session_id": result["session"]["id"], "minutes": minutes},
            )
        )
        for event_type, payload in pending:
            await self.emit_event(event_type, payload)
        return result

    async def list_sessions(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent first."""
        user_id = InputValidator.validate_user_id(user_id)
        limit = InputValidator.validate_positive_integer(limit, "limit", max_value=MAX_SESSION_LIMIT)
        async with self._stores.unit_of_work(user_id) as uow:
            return [session.to_dict() for session in await uow.list_pomodoro_sessions(limit)]

    # ========================================================================
    # REPORTS
    # ========================================================================

    async def get_daily_report(
        self, user_id: str, day: Any = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        target = parse_day(day, "date") or day_start(now or utc_now())
        async with self._stores.unit_of_work(user_id) as uow:
            report = await uow.get_battle_report(target)
            return report.to_dict() if report is not None else empty_report(target)

    async def get_summary(
        self,
        user_id: str,
        start: Any = None,
        end: Any = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Totals over `[start, end]`, both inclusive; defaults to the last
        seven days ending today.

        Raises:
            ValidationError: Unparseable dates, start after end, or a range
                longer than a year
        """
        user_id = InputValidator.validate_user_id(user_id)
        end_day = parse_day(end, "endDate") or day_start(now or utc_now())
        start_day = parse_day(start, "startDate") or end_day - timedelta(days=6)
        if start_day > end_day:
            raise ValidationError("startDate", "Must not be after endDate")
        if (end_day - start_day).days >= MAX_SUMMARY_DAYS:
            raise ValidationError("startDate", f"Range cannot exceed {MAX_SUMMARY_DAYS} days")

        async with self._stores.unit_of_work(user_id) as uow:
            reports = [report.to_dict() for report in await uow.list_battle_reports(start_day, end_day)]

        total_days = len(reports)
        total_time = sum(r["totalBattleTime"] for r in reports)
        total_energy = sum(r["energyBallsConsumed"] for r in reports)
        return {
            "startDate": start_day.date().isoformat(),
            "endDate": end_day.date().isoformat(),
            "totalDays": total_days,
            "totalBattleTime": total_time,
            "totalEnergyBalls": total_energy,
            "totalTasksCompleted": sum(r["tasksCompleted"] for r in reports),
            "totalPomodoroCycles": sum(r["pomodoroCycles"] for r in reports),
            "averageBattleTime": round(total_time / total_days) if total_days else 0,
            "averageEnergyBalls": round(total_energy / total_days) if total_days else 0,
            "dailyReports": reports,
        }
