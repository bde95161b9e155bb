"""
Task Service
============

Purpose
-------
Task, habit and daily lifecycle: creation with reward resolution,
updates, completion through the progression engine, same-day undo,
pomodoro sessions, the daily reset and intelligent creation.

Completion Pipeline
-------------------
One unit of work per completion, rows locked FOR UPDATE:

1. Load the task (ownership check) and the user's stats
2. Task aggregate transition (duplicate / already-completed checks)
3. Spend the stored energy cost
4. XP = stored reward + habit streak bonus, level roll-over
5. Linked skill gains XP (80% for habits)
6. Activity log entry, today's battle report (and the pomodoro session
   when the completion came from one)

Events are published only after the unit of work committed.

Events
------
- task.created / task.updated / task.deleted
- task.completed / task.uncompleted
- task.daily_reset
- pomodoro.completed
- plus the stats and skill events raised along the way
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from src.core.database.base import utc_now
from src.core.event.types import (
    POMODORO_COMPLETED,
    TASK_CREATED,
    TASK_DELETED,
    TASK_UPDATED,
    TASKS_RESET,
)
from src.core.validation.input_validator import InputValidator
from src.database.models import TaskRow
from src.domain.models.task import Task
from src.domain.progression import energy, habit
from src.domain.progression.rewards import (
    AI_CREATION,
    DIFFICULTY_ENERGY,
    STANDARD,
    Difficulty,
    RewardTable,
    normalize_category,
    resolve_reward,
)
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError, TaskNotFoundError, ValidationError
from src.modules.skills.constants import DEFAULT_SKILL_NAME

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.database.models import Skill
    from src.modules.activity.service import ActivityService
    from src.modules.ai.service import AIService
    from src.modules.battle.service import BattleReportService
    from src.modules.skills.service import SkillService
    from src.modules.stats.service import StatsService
    from src.modules.store.base import StoreSession
    from src.modules.store.provider import StoreProvider

PendingEvent = Tuple[str, Dict[str, Any]]

MAX_DURATION_MINUTES = 24 * 60
MAX_POMODORO_MINUTES = 240
MAX_TITLE_LENGTH = 255


def _field(data: Mapping[str, Any], camel: str, snake: Optional[str] = None) -> Any:
    """Read a request field sent as camelCase (JSON clients) or snake_case."""
    if camel in data:
        return data[camel]
    if snake is not None:
        return data.get(snake)
    return None


def _has_field(data: Mapping[str, Any], camel: str, snake: Optional[str] = None) -> bool:
    return camel in data or (snake is not None and snake in data)


def _title_from(text: str) -> str:
    """Generated titles are cut to fit the title column; the full text stays in the description."""
    text = text.strip()
    if len(text) <= MAX_TITLE_LENGTH:
        return text
    return text[: MAX_TITLE_LENGTH - 1].rstrip() + "…"


class TaskService(BaseService):
    """
    Public Methods
    --------------
    - list_tasks() / get_task()
    - create_task() -> Standard reward table
    - update_task() -> A `completed` toggle routes through complete/uncomplete
    - delete_task()
    - complete_task() / uncomplete_task()
    - complete_pomodoro()
    - reset_daily_habits()
    - intelligent_create() -> AI (or rule-based) analysis, AI reward table
    - analyze_task()
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
        stats: StatsService,
        skills: SkillService,
        activity: ActivityService,
        ai: AIService,
        battles: BattleReportService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores
        self._stats = stats
        self._skills = skills
        self._activity = activity
        self._ai = ai
        self._battles = battles

    # ========================================================================
    # CONFIG
    # ========================================================================

    def _reward_table(self, name: str, fallback: RewardTable) -> RewardTable:
        values = self.get_config(f"rewards.{name}")
        if not isinstance(values, Mapping):
            return fallback
        try:
            return RewardTable.from_config(name, values)
        except (KeyError, TypeError, ValueError):
            self.log.warning(
                "Invalid reward table in config, using built-in",
                extra={"table": name},
            )
            return fallback

    def _difficulty_energy(self, difficulty: Difficulty) -> int:
        return self.get_config_int(f"rewards.difficulty_energy.{difficulty.value}", DIFFICULTY_ENERGY[difficulty])

    async def _publish(self, pending: List[PendingEvent]) -> None:
        for event_type, payload in pending:
            await self.emit_event(event_type, payload)

    # ========================================================================
    # READS
    # ========================================================================

    async def list_tasks(self, user_id: str) -> List[Dict[str, Any]]:
        user_id = InputValidator.validate_user_id(user_id)
        async with self._stores.unit_of_work(user_id) as uow:
            rows = await uow.list_tasks()
            return [row.to_dict() for row in rows]

    async def get_task(self, user_id: str, task_id: Any) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        task_id = InputValidator.validate_entity_id(task_id, "task_id")
        async with self._stores.unit_of_work(user_id) as uow:
            row = await uow.get_task(task_id)
            if row is None:
                raise TaskNotFoundError(task_id)
            return row.to_dict()

    # ========================================================================
    # CREATE / UPDATE / DELETE
    # ========================================================================

    async def _resolve_link(self, uow: StoreSession, kind: str, value: Any) -> Optional[int]:
        """Validate an optional skill/goal reference; it must belong to the user."""
        ref_id = InputValidator.validate_optional_integer(value, f"{kind}Id", min_value=1)
        if ref_id is None:
            return None
        lookup = uow.get_skill if kind == "skill" else uow.get_goal
        if await lookup(ref_id) is None:
            raise NotFoundError(kind.capitalize(), ref_id)
        return ref_id

    async def create_task(
        self, user_id: str, data: Mapping[str, Any], now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Create a task priced with the standard reward table.

        Accepted fields: title, description, category, difficulty,
        estimatedDuration, expReward, requiredEnergyBalls, habitValue,
        skillId, goalId, tags.

        Raises:
            ValidationError: Missing title or malformed numbers
            NotFoundError: skillId / goalId not owned by the user
        """
        user_id = InputValidator.validate_user_id(user_id)
        title = InputValidator.validate_string(data.get("title"), "title", min_length=1, max_length=MAX_TITLE_LENGTH)
        description = InputValidator.validate_optional_string(data.get("description"), "description", 5000)
        category = normalize_category(data.get("category"))
        difficulty = Difficulty.parse(data.get("difficulty"))
        duration = InputValidator.validate_optional_integer(
            _field(data, "estimatedDuration", "estimated_duration"), "estimatedDuration", 1, MAX_DURATION_MINUTES
        )
        if duration is None:
            duration = self.get_config_int("tasks.default_duration_minutes", 25)
        exp_override = InputValidator.validate_optional_integer(
            _field(data, "expReward", "exp_reward"), "expReward", 0, 100_000
        )
        energy_override = InputValidator.validate_optional_integer(
            _field(data, "requiredEnergyBalls", "required_energy_balls"), "requiredEnergyBalls", 0, 100
        )
        habit_value = _field(data, "habitValue", "habit_value")
        tags = InputValidator.validate_string_list(data.get("tags"), "tags")

        reward = resolve_reward(
            difficulty,
            duration,
            exp_override=exp_override,
            energy_override=energy_override,
            table=self._reward_table("standard", STANDARD),
            minutes_per_ball=self.get_config_int("energy.minutes_per_ball", 15),
        )
        now = now or utc_now()

        async with self._stores.unit_of_work(user_id) as uow:
            row = uow.add_task(
                TaskRow(
                    user_id=user_id,
                    title=title,
                    description=description,
                    category=category.value,
                    difficulty=difficulty.value,
                    exp_reward=reward.exp,
                    required_energy_balls=reward.energy,
                    estimated_duration=duration,
                    habit_value=self._clamp_habit_value(habit_value),
                    skill_id=await self._resolve_link(uow, "skill", _field(data, "skillId", "skill_id")),
                    goal_id=await self._resolve_link(uow, "goal", _field(data, "goalId", "goal_id")),
                    tags=tags,
                    created_at=now,
                    updated_at=now,
                )
            )
            await uow.flush()
            result = row.to_dict()

        self.log.info(
            "Task created",
            extra={
                "user_id": user_id,
                "task_id": result["id"],
                "category": category.value,
                "exp_reward": reward.exp,
                "energy_cost": reward.energy,
            },
        )
        await self.emit_event(TASK_CREATED, {"user_id": user_id, "task_id": result["id"], "category": category.value})
        return result

    @staticmethod
    def _clamp_habit_value(value: Any) -> float:
        if value is None or value == "":
            return 0.0
        if isinstance(value, bool):
            raise ValidationError("habitValue", "Must be a number")
        try:
            return habit.clamp_value(float(value))
        except (TypeError, ValueError):
            raise ValidationError("habitValue", "Must be a number")

    async def update_task(
        self,
        user_id: str,
        task_id: Any,
        patch: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Apply a partial update.

        A change of `completed` is not written directly: it runs the full
        completion (or undo) flow in the same unit of work, so energy, XP
        and the activity log stay consistent.

        Raises:
            TaskNotFoundError: Unknown task or owned by another user
        """
        user_id = InputValidator.validate_user_id(user_id)
        task_id = InputValidator.validate_entity_id(task_id, "task_id")
        now = now or utc_now()
        pending: List[PendingEvent] = []
        changed: List[str] = []

        self.log_operation("update_task", user_id=user_id, task_id=task_id, fields=sorted(patch.keys()))

        async with self._stores.unit_of_work(user_id) as uow:
            row = await uow.get_task(task_id, for_update=True)
            if row is None:
                raise TaskNotFoundError(task_id)

            if "title" in patch:
                row.title = InputValidator.validate_string(
                    patch["title"], "title", min_length=1, max_length=MAX_TITLE_LENGTH
                )
                changed.append("title")
            if "description" in patch:
                row.description = InputValidator.validate_optional_string(patch["description"], "description", 5000)
                changed.append("description")
            if "category" in patch:
                row.category = normalize_category(patch["category"]).value
                changed.append("category")
            if "difficulty" in patch:
                row.difficulty = Difficulty.parse(patch["difficulty"]).value
                changed.append("difficulty")
            if _has_field(patch, "estimatedDuration", "estimated_duration"):
                row.estimated_duration = InputValidator.validate_integer(
                    _field(patch, "estimatedDuration", "estimated_duration"),
                    "estimatedDuration",
                    1,
                    MAX_DURATION_MINUTES,
                )
                changed.append("estimated_duration")
            if _has_field(patch, "expReward", "exp_reward"):
                row.exp_reward = InputValidator.validate_integer(
                    _field(patch, "expReward", "exp_reward"), "expReward", 0, 100_000
                )
                changed.append("exp_reward")
            if _has_field(patch, "requiredEnergyBalls", "required_energy_balls"):
                row.required_energy_balls = InputValidator.validate_integer(
                    _field(patch, "requiredEnergyBalls", "required_energy_balls"), "requiredEnergyBalls", 0, 100
                )
                changed.append("required_energy_balls")
            if _has_field(patch, "habitValue", "habit_value"):
                row.habit_value = self._clamp_habit_value(_field(patch, "habitValue", "habit_value"))
                changed.append("habit_value")
            if _has_field(patch, "skillId", "skill_id"):
                row.skill_id = await self._resolve_link(uow, "skill", _field(patch, "skillId", "skill_id"))
                changed.append("skill_id")
            if _has_field(patch, "goalId", "goal_id"):
                row.goal_id = await self._resolve_link(uow, "goal", _field(patch, "goalId", "goal_id"))
                changed.append("goal_id")
            if "tags" in patch:
                row.tags = InputValidator.validate_string_list(patch["tags"], "tags")
                changed.append("tags")

            if "completed" in patch and bool(patch["completed"]) != bool(row.completed):
                if patch["completed"]:
                    await self._complete_in_uow(uow, row, now, pending)
                else:
                    await self._uncomplete_in_uow(uow, row, now, pending)

            row.updated_at = now
            result = row.to_dict()

        if changed:
            pending.insert(0, (TASK_UPDATED, {"user_id": user_id, "task_id": task_id, "fields": changed}))
        await self._publish(pending)
        return result

    async def delete_task(self, user_id: str, task_id: Any) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        task_id = InputValidator.validate_entity_id(task_id, "task_id")

        async with self._stores.unit_of_work(user_id) as uow:
            row = await uow.get_task(task_id, for_update=True)
            if row is None:
                raise TaskNotFoundError(task_id)
            await uow.delete_task(row)

        self.log.info("Task deleted", extra={"user_id": user_id, "task_id": task_id})
        await self.emit_event(TASK_DELETED, {"user_id": user_id, "task_id": task_id})
        return {"message": "任务删除成功", "id": task_id}

    # ========================================================================
    # COMPLETION
    # ========================================================================

    async def _linked_skill(self, uow: StoreSession, row: TaskRow) -> Optional[Skill]:
        if row.skill_id is None:
            return None
        return await uow.get_skill(row.skill_id, for_update=True)

    async def _complete_in_uow(
        self,
        uow: StoreSession,
        row: TaskRow,
        now: datetime,
        pending: List[PendingEvent],
        focus_minutes: int = 0,
    ) -> Dict[str, Any]:
        task = Task.from_row(row)
        stats_row, stats = await self._stats.load_for_update(uow, now, pending)

        bonus = task.complete(now)
        cost = task.reward.energy
        stats = energy.spend(stats, cost, now)

        exp_gained = task.reward.exp + bonus
        stats, levels = self._stats.gain_experience(stats, exp_gained, now, pending)
        stats = stats.evolve(now, total_tasks_completed=stats.total_tasks_completed + 1)

        task.apply_to(row)
        row.updated_at = now
        stats.apply_to(stats_row)

        skill = await self._linked_skill(uow, row)
        if skill is not None:
            ratio = self.get_config("habits.skill_exp_ratio", 0.8) if task.is_habit else 1
            self._skills.grant_exp(uow, skill, math.floor(exp_gained * ratio), now, pending)

        if task.is_habit:
            self._activity.record(
                uow,
                "habit_complete",
                exp_gained,
                f"完成习惯: {row.title} (连续{task.habit.streak}天)",
                task_id=row.id,
                skill_id=row.skill_id,
                now=now,
            )
        else:
            self._activity.record(
                uow,
                "task_complete",
                exp_gained,
                f"完成任务: {row.title}",
                task_id=row.id,
                skill_id=row.skill_id,
                now=now,
            )

        if focus_minutes:
            self._battles.record_session(uow, now, focus_minutes, energy_balls=cost, task_id=row.id)
        await self._battles.record_battle(
            uow,
            now,
            row.title,
            battle_minutes=focus_minutes,
            energy_balls=cost,
            task_completed=True,
            cycles=1 if focus_minutes else 0,
            task_id=row.id,
        )

        pending.extend((event.event_name, event.payload) for event in task.clear_domain_events())

        self.log.info(
            "Task completed",
            extra={
                "user_id": uow.user_id,
                "task_id": row.id,
                "exp_gained": exp_gained,
                "streak_bonus": bonus,
                "energy_spent": cost,
                "energy_left": stats.energy_balls,
                "levels_gained": levels,
            },
        )
        return {
            "task": row.to_dict(),
            "stats": stats.to_dict(),
            "expGained": exp_gained,
            "energySpent": cost,
            "streakBonus": bonus,
            "levelsGained": levels,
            "leveledUp": levels > 0,
        }

    async def _uncomplete_in_uow(
        self,
        uow: StoreSession,
        row: TaskRow,
        now: datetime,
        pending: List[PendingEvent],
    ) -> Dict[str, Any]:
        task = Task.from_row(row)
        stats_row, stats = await self._stats.load_for_update(uow, now, pending)
        completed_at = row.completed_at or row.last_completed_date

        task.uncomplete(now)
        refunded = task.reward.energy
        stats = energy.refund(stats, refunded, now)
        stats = stats.evolve(now, total_tasks_completed=max(0, stats.total_tasks_completed - 1))

        task.apply_to(row)
        row.updated_at = now
        stats.apply_to(stats_row)
        await self._battles.revert_completion(uow, completed_at, row.id, refunded, now)

        self._activity.record(
            uow,
            "task_uncomplete",
            0,
            f"取消完成: {row.title}",
            task_id=row.id,
            now=now,
        )
        pending.extend((event.event_name, event.payload) for event in task.clear_domain_events())

        self.log.info(
            "Task completion undone",
            extra={"user_id": uow.user_id, "task_id": row.id, "energy_refunded": refunded},
        )
        return {"task": row.to_dict(), "stats": stats.to_dict(), "energyRefunded": refunded}

    async def complete_task(
        self, user_id: str, task_id: Any, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Complete a task, habit or daily.

        Returns:
            {task, stats, expGained, energySpent, streakBonus, levelsGained, leveledUp}

        Raises:
            TaskNotFoundError: Unknown task or owned by another user
            InvalidOperationError: Non-habit task already completed
            DuplicateCompletionError: Habit already completed today
            InsufficientEnergyError: Not enough energy balls
        """
        user_id = InputValidator.validate_user_id(user_id)
        task_id = InputValidator.validate_entity_id(task_id, "task_id")
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("complete_task", user_id=user_id, task_id=task_id)

        async with self._stores.unit_of_work(user_id) as uow:
            row = await uow.get_task(task_id, for_update=True)
            if row is None:
                raise TaskNotFoundError(task_id)
            result = await self._complete_in_uow(uow, row, now, pending)

        await self._publish(pending)
        return result

    async def uncomplete_task(
        self, user_id: str, task_id: Any, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Undo a completion: energy is refunded, XP is kept.

        Raises:
            TaskNotFoundError: Unknown task or owned by another user
            InvalidUncompleteError: Habit not completed today
            InvalidOperationError: Task is not completed
        """
        user_id = InputValidator.validate_user_id(user_id)
        task_id = InputValidator.validate_entity_id(task_id, "task_id")
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("uncomplete_task", user_id=user_id, task_id=task_id)

        async with self._stores.unit_of_work(user_id) as uow:
            row = await uow.get_task(task_id, for_update=True)
            if row is None:
                raise TaskNotFoundError(task_id)
            result = await self._uncomplete_in_uow(uow, row, now, pending)

        await self._publish(pending)
        return result

    async def complete_pomodoro(
        self,
        user_id: str,
        task_id: Any,
        minutes: Any = 25,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Record a finished pomodoro on a task and complete it.

        The focused minutes are added to `actual_duration`, then the regular
        completion flow runs in the same unit of work and also records the
        session and its minutes and cycle in today's battle report.
        """
        user_id = InputValidator.validate_user_id(user_id)
        task_id = InputValidator.validate_entity_id(task_id, "task_id")
        minutes = InputValidator.validate_positive_integer(minutes, "minutes", max_value=MAX_POMODORO_MINUTES)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("complete_pomodoro", user_id=user_id, task_id=task_id, minutes=minutes)

        async with self._stores.unit_of_work(user_id) as uow:
            row = await uow.get_task(task_id, for_update=True)
            if row is None:
                raise TaskNotFoundError(task_id)
            row.actual_duration = (row.actual_duration or 0) + minutes
            result = await self._complete_in_uow(uow, row, now, pending, focus_minutes=minutes)

        pending.append((POMODORO_COMPLETED, {"user_id": user_id, "task_id": task_id, "minutes": minutes}))
        await self._publish(pending)
        return dict(result, minutes=minutes)

    async def reset_daily_habits(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Clear completions on habits and dailies, then run the energy refill.

        Returns:
            {message, resetCount, energyBallsRestored, stats}
        """
        user_id = InputValidator.validate_user_id(user_id)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("reset_daily_habits", user_id=user_id)

        async with self._stores.unit_of_work(user_id) as uow:
            reset_count = 0
            for row in await uow.list_tasks(for_update=True):
                task = Task.from_row(row)
                if task.reset_for_new_day():
                    task.apply_to(row)
                    row.updated_at = now
                    reset_count += 1

            _, stats, restored = await self._stats.load_and_refill(uow, now, pending)

        pending.append((TASKS_RESET, {"user_id": user_id, "reset_count": reset_count}))
        await self._publish(pending)
        return {
            "message": "每日任务已重置",
            "resetCount": reset_count,
            "energyBallsRestored": restored,
            "stats": stats.to_dict(),
        }

    # ========================================================================
    # AI-ASSISTED
    # ========================================================================

    async def intelligent_create(
        self, user_id: str, description: Any, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Create a task from a free-text description.

        The description is analysed by the AI service (rule-based for the
        demo account or without an API key), priced with the AI reward
        table and energy by difficulty, and linked to a core skill.

        Returns:
            {task, analysis, skill}
        """
        user_id = InputValidator.validate_user_id(user_id)
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("description", "任务描述是必需的")
        description = description.strip()
        now = now or utc_now()

        analysis = await self._ai.analyze_for_creation(description, demo=self._stores.is_demo(user_id))

        category = normalize_category(analysis.get("category"))
        difficulty = Difficulty.parse(analysis.get("difficulty"))
        energy_balls = analysis.get("energyBalls")
        reward = resolve_reward(
            difficulty,
            exp_override=None,
            energy_override=energy_balls if energy_balls is not None else self._difficulty_energy(difficulty),
            table=self._reward_table("ai_creation", AI_CREATION),
        )

        async with self._stores.unit_of_work(user_id) as uow:
            skill = await self._skills.find_skill_by_tag(uow, analysis.get("skillName"))
            if skill is None:
                skill = await self._skills.find_skill_by_tag(uow, DEFAULT_SKILL_NAME)

            row = uow.add_task(
                TaskRow(
                    user_id=user_id,
                    title=_title_from(analysis.get("title") or description),
                    description=description,
                    category=category.value,
                    difficulty=difficulty.value,
                    exp_reward=reward.exp,
                    required_energy_balls=reward.energy,
                    estimated_duration=analysis.get("estimatedDuration") or reward.energy * 15,
                    skill_id=skill.id if skill is not None else None,
                    tags=[],
                    created_at=now,
                    updated_at=now,
                )
            )
            await uow.flush()
            result = {
                "task": row.to_dict(),
                "analysis": analysis,
                "skill": skill.to_dict() if skill is not None else None,
            }

        self.log.info(
            "Task created from description",
            extra={
                "user_id": user_id,
                "task_id": result["task"]["id"],
                "ai_generated": bool(analysis.get("aiGenerated")),
                "difficulty": difficulty.value,
            },
        )
        await self.emit_event(
            TASK_CREATED,
            {"user_id": user_id, "task_id": result["task"]["id"], "category": category.value, "source": "intelligent"},
        )
        return result

    async def analyze_task(self, title: Any, description: Optional[str] = None) -> Dict[str, Any]:
        return await self._ai.analyze_task(title, description)
