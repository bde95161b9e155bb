"""
Goal Service
============

Long-term goals ("main quests"). A goal pays its `exp_reward` exactly once,
on completion; every focused pomodoro spent on it pays
`pomodoro_exp_reward`, half of which also goes to each skill whose name
matches one of the goal's skill tags.

A goal can carry ordered milestones; while the goal is open its `progress`
is recomputed as the share of completed milestones whenever one is added,
changed or removed.

Deleting a goal detaches its tasks (`goal_id` set to NULL) rather than
deleting them; its milestones go with it.

Events
------
- goal.created / goal.updated / goal.deleted
- goal.completed
- goal.milestone_completed
- pomodoro.completed (with `goal_id`)
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from src.core.database.base import utc_now
from src.core.event.types import (
    GOAL_COMPLETED,
    GOAL_CREATED,
    GOAL_DELETED,
    GOAL_UPDATED,
    MILESTONE_COMPLETED,
    POMODORO_COMPLETED,
)
from src.core.validation.input_validator import InputValidator
from src.database.models import Goal, Milestone
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import InvalidOperationError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.activity.service import ActivityService
    from src.modules.battle.service import BattleReportService
    from src.modules.skills.service import SkillService
    from src.modules.stats.service import StatsService
    from src.modules.store.base import StoreSession
    from src.modules.store.provider import StoreProvider

PendingEvent = Tuple[str, Dict[str, Any]]

MAX_MILESTONES = 50
MAX_POMODORO_MINUTES = 240


def parse_target_date(value: Any) -> Optional[datetime]:
    """
    ISO-8601 date or datetime; naive values are taken as UTC.

    Example:
        >>> parse_target_date("2026-12-31").isoformat()
        '2026-12-31T00:00:00+00:00'
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError("targetDate", f"Invalid date '{value}'")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _progress(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError("progress", "Must be a number between 0 and 1")
    try:
        progress = float(value)
    except (TypeError, ValueError):
        raise ValidationError("progress", "Must be a number between 0 and 1")
    if not 0.0 <= progress <= 1.0:
        raise ValidationError("progress", "Must be a number between 0 and 1")
    return progress


def _milestone_inputs(value: Any) -> List[Tuple[str, Optional[str]]]:
    """(title, description) pairs from a list of strings or objects; blank titles dropped."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("milestones", "Must be a list")
    if len(value) > MAX_MILESTONES:
        raise ValidationError("milestones", f"Cannot exceed {MAX_MILESTONES} milestones")

    result = []
    for item in value:
        if isinstance(item, Mapping):
            title, description = item.get("title"), item.get("description")
        else:
            title, description = item, None
        if not isinstance(title, str) or not title.strip():
            continue
        result.append(
            (
                InputValidator.validate_string(title, "milestones", min_length=1, max_length=255),
                InputValidator.validate_optional_string(description, "description", 5000),
            )
        )
    return result


class GoalService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
        stats: StatsService,
        skills: SkillService,
        activity: ActivityService,
        battles: BattleReportService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores
        self._stats = stats
        self._skills = skills
        self._activity = activity
        self._battles = battles

    async def _publish(self, pending: List[PendingEvent]) -> None:
        for event_type, payload in pending:
            await self.emit_event(event_type, payload)

    @staticmethod
    async def _require_goal(uow: StoreSession, goal_id: int, for_update: bool = False) -> Goal:
        goal = await uow.get_goal(goal_id, for_update=for_update)
        if goal is None:
            raise NotFoundError("Goal", goal_id)
        return goal

    # ========================================================================
    # CRUD
    # ========================================================================

    async def list_goals(self, user_id: str) -> List[Dict[str, Any]]:
        """Newest first, each with its `milestones` in display order."""
        user_id = InputValidator.validate_user_id(user_id)
        async with self._stores.unit_of_work(user_id) as uow:
            by_goal: Dict[int, List[Dict[str, Any]]] = {}
            for milestone in await uow.list_milestones():
                by_goal.setdefault(milestone.goal_id, []).append(milestone.to_dict())
            return [dict(goal.to_dict(), milestones=by_goal.get(goal.id, [])) for goal in await uow.list_goals()]

    async def get_goal(self, user_id: str, goal_id: Any) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id)
            milestones = await uow.list_milestones(goal_id)
            return dict(goal.to_dict(), milestones=[m.to_dict() for m in milestones])

    async def create_goal(
        self, user_id: str, data: Mapping[str, Any], now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Create a goal.

        Accepted fields: title, description, targetDate, progress, expReward,
        pomodoroExpReward, requiredEnergyBalls, skillTags, milestones.

        `milestones` is a list of titles or `{title, description}` objects;
        blank titles are skipped and the rest keep their list order.
        """
        user_id = InputValidator.validate_user_id(user_id)
        title = InputValidator.validate_string(data.get("title"), "title", min_length=1, max_length=255)
        description = InputValidator.validate_optional_string(data.get("description"), "description", 5000)
        exp_reward = InputValidator.validate_optional_integer(data.get("expReward"), "expReward", 0, 100_000)
        pomodoro_exp = InputValidator.validate_optional_integer(
            data.get("pomodoroExpReward"), "pomodoroExpReward", 0, 10_000
        )
        energy_balls = InputValidator.validate_optional_integer(
            data.get("requiredEnergyBalls"), "requiredEnergyBalls", 0, 100
        )
        milestones = _milestone_inputs(data.get("milestones"))
        now = now or utc_now()

        async with self._stores.unit_of_work(user_id) as uow:
            goal = uow.add_goal(
                Goal(
                    user_id=user_id,
                    title=title,
                    description=description,
                    target_date=parse_target_date(data.get("targetDate")),
                    progress=_progress(data["progress"]) if data.get("progress") is not None else 0.0,
                    exp_reward=exp_reward if exp_reward is not None else self.get_config_int("goals.exp_reward", 50),
                    pomodoro_exp_reward=(
                        pomodoro_exp
                        if pomodoro_exp is not None
                        else self.get_config_int("goals.pomodoro_exp_reward", 10)
                    ),
                    required_energy_balls=(
                        energy_balls
                        if energy_balls is not None
                        else self.get_config_int("goals.required_energy_balls", 4)
                    ),
                    skill_tags=InputValidator.validate_string_list(data.get("skillTags"), "skillTags"),
                    created_at=now,
                    updated_at=now,
                )
            )
            await uow.flush()
            rows = [
                uow.add_milestone(
                    Milestone(
                        user_id=user_id,
                        goal_id=goal.id,
                        title=milestone_title,
                        description=milestone_description,
                        completed=False,
                        position=position,
                        created_at=now,
                    )
                )
                for position, (milestone_title, milestone_description) in enumerate(milestones)
            ]
            await uow.flush()
            result = dict(goal.to_dict(), milestones=[m.to_dict() for m in rows])

        self.log.info(
            "Goal created",
            extra={"user_id": user_id, "goal_id": result["id"], "milestones": len(milestones)},
        )
        await self.emit_event(GOAL_CREATED, {"user_id": user_id, "goal_id": result["id"]})
        return result

    async def update_goal(
        self,
        user_id: str,
        goal_id: Any,
        patch: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Partial update. `completed: true` runs the completion flow (XP is
        paid once); a completed goal cannot be reopened.
        """
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        now = now or utc_now()
        pending: List[PendingEvent] = []

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)

            if "title" in patch:
                goal.title = InputValidator.validate_string(patch["title"], "title", min_length=1, max_length=255)
            if "description" in patch:
                goal.description = InputValidator.validate_optional_string(patch["description"], "description", 5000)
            if "targetDate" in patch:
                goal.target_date = parse_target_date(patch["targetDate"])
            if "progress" in patch:
                goal.progress = _progress(patch["progress"])
            if "expReward" in patch:
                goal.exp_reward = InputValidator.validate_integer(patch["expReward"], "expReward", 0, 100_000)
            if "pomodoroExpReward" in patch:
                goal.pomodoro_exp_reward = InputValidator.validate_integer(
                    patch["pomodoroExpReward"], "pomodoroExpReward", 0, 10_000
                )
            if "requiredEnergyBalls" in patch:
                goal.required_energy_balls = InputValidator.validate_integer(
                    patch["requiredEnergyBalls"], "requiredEnergyBalls", 0, 100
                )
            if "skillTags" in patch:
                goal.skill_tags = InputValidator.validate_string_list(patch["skillTags"], "skillTags")

            if "completed" in patch and bool(patch["completed"]) != bool(goal.completed):
                if not patch["completed"]:
                    raise InvalidOperationError("reopen_goal", "Completed goals cannot be reopened")
                await self._complete_in_uow(uow, goal, now, pending)

            goal.updated_at = now
            result = goal.to_dict()

        pending.insert(0, (GOAL_UPDATED, {"user_id": user_id, "goal_id": goal_id}))
        await self._publish(pending)
        return result

    async def delete_goal(self, user_id: str, goal_id: Any) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)
            await uow.delete_goal(goal)

        self.log.info("Goal deleted", extra={"user_id": user_id, "goal_id": goal_id})
        await self.emit_event(GOAL_DELETED, {"user_id": user_id, "goal_id": goal_id})
        return {"message": "目标删除成功", "id": goal_id}

    # ========================================================================
    # MILESTONES
    # ========================================================================

    @staticmethod
    async def _require_milestone(
        uow: StoreSession, goal_id: int, milestone_id: int, for_update: bool = False
    ) -> Milestone:
        milestone = await uow.get_milestone(milestone_id, for_update=for_update)
        if milestone is None or milestone.goal_id != goal_id:
            raise NotFoundError("Milestone", milestone_id)
        return milestone

    @staticmethod
    async def _sync_progress(uow: StoreSession, goal: Goal, now: datetime) -> None:
        """Open goals track the completed share of their milestones; completed goals stay at 1.0."""
        if goal.completed:
            return
        milestones = await uow.list_milestones(goal.id)
        done = sum(1 for m in milestones if m.completed)
        goal.progress = done / len(milestones) if milestones else 0.0
        goal.updated_at = now

    async def list_milestones(self, user_id: str, goal_id: Any) -> List[Dict[str, Any]]:
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        async with self._stores.unit_of_work(user_id) as uow:
            await self._require_goal(uow, goal_id)
            return [m.to_dict() for m in await uow.list_milestones(goal_id)]

    async def add_milestone(
        self,
        user_id: str,
        goal_id: Any,
        data: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Append a milestone (or insert it at `order`).

        Returns:
            {milestone, goal}
        """
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        title = InputValidator.validate_string(data.get("title"), "title", min_length=1, max_length=255)
        description = InputValidator.validate_optional_string(data.get("description"), "description", 5000)
        position = InputValidator.validate_optional_integer(data.get("order"), "order", 0, MAX_MILESTONES)
        now = now or utc_now()

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)
            existing = await uow.list_milestones(goal_id)
            if len(existing) >= MAX_MILESTONES:
                raise ValidationError("milestones", f"Cannot exceed {MAX_MILESTONES} milestones")

            milestone = uow.add_milestone(
                Milestone(
                    user_id=user_id,
                    goal_id=goal_id,
                    title=title,
                    description=description,
                    completed=False,
                    position=len(existing) if position is None else position,
                    created_at=now,
                )
            )
            await uow.flush()
            await self._sync_progress(uow, goal, now)
            result = {"milestone": milestone.to_dict(), "goal": goal.to_dict()}

        await self.emit_event(
            GOAL_UPDATED, {"user_id": user_id, "goal_id": goal_id, "milestone_id": result["milestone"]["id"]}
        )
        return result

    async def update_milestone(
        self,
        user_id: str,
        goal_id: Any,
        milestone_id: Any,
        patch: Mapping[str, Any],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Partial update of title, description, order or completed.

        Completing stamps `completedAt`; reopening clears it. The goal's
        progress is recomputed either way.

        Returns:
            {milestone, goal}
        """
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        milestone_id = InputValidator.validate_entity_id(milestone_id, "milestone_id")
        now = now or utc_now()
        pending: List[PendingEvent] = [
            (GOAL_UPDATED, {"user_id": user_id, "goal_id": goal_id, "milestone_id": milestone_id})
        ]

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)
            milestone = await self._require_milestone(uow, goal_id, milestone_id, for_update=True)

            if "title" in patch:
                milestone.title = InputValidator.validate_string(patch["title"], "title", min_length=1, max_length=255)
            if "description" in patch:
                milestone.description = InputValidator.validate_optional_string(
                    patch["description"], "description", 5000
                )
            if "order" in patch:
                milestone.position = InputValidator.validate_integer(patch["order"], "order", 0, MAX_MILESTONES)
            if "completed" in patch and bool(patch["completed"]) != bool(milestone.completed):
                milestone.completed = bool(patch["completed"])
                milestone.completed_at = now if milestone.completed else None
                if milestone.completed:
                    pending.append(
                        (MILESTONE_COMPLETED, {"user_id": user_id, "goal_id": goal_id, "milestone_id": milestone_id})
                    )

            await self._sync_progress(uow, goal, now)
            result = {"milestone": milestone.to_dict(), "goal": goal.to_dict()}

        self.log.info(
            "Milestone updated",
            extra={
                "user_id": user_id,
                "goal_id": goal_id,
                "milestone_id": milestone_id,
                "progress": result["goal"]["progress"],
            },
        )
        await self._publish(pending)
        return result

    async def delete_milestone(
        self, user_id: str, goal_id: Any, milestone_id: Any, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        milestone_id = InputValidator.validate_entity_id(milestone_id, "milestone_id")
        now = now or utc_now()

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)
            milestone = await self._require_milestone(uow, goal_id, milestone_id, for_update=True)
            await uow.delete_milestone(milestone)
            await uow.flush()
            await self._sync_progress(uow, goal, now)
            progress = goal.progress

        await self.emit_event(GOAL_UPDATED, {"user_id": user_id, "goal_id": goal_id, "milestone_id": milestone_id})
        return {"message": "里程碑删除成功", "id": milestone_id, "goalProgress": progress}

    # ========================================================================
    # COMPLETION
    # ========================================================================

    async def _reward_skills(
        self,
        uow: StoreSession,
        goal: Goal,
        exp: int,
        now: datetime,
        pending: List[PendingEvent],
    ) -> List[Dict[str, Any]]:
        ratio = self.get_config("goals.pomodoro_skill_ratio", 0.5)
        skill_exp = math.floor(exp * ratio)
        rewarded = []
        if skill_exp <= 0:
            return rewarded
        for skill in await self._skills.matching_skills(uow, goal.skill_tags or []):
            self._skills.grant_exp(uow, skill, skill_exp, now, pending)
            rewarded.append({"skillId": skill.id, "name": skill.name, "expGained": skill_exp})
        return rewarded

    async def _complete_in_uow(
        self,
        uow: StoreSession,
        goal: Goal,
        now: datetime,
        pending: List[PendingEvent],
    ) -> Dict[str, Any]:
        if goal.completed:
            raise InvalidOperationError("complete_goal", "Goal is already completed")

        stats_row, stats = await self._stats.load_for_update(uow, now, pending)
        exp = max(0, goal.exp_reward or 0)
        stats, levels = self._stats.gain_experience(stats, exp, now, pending)
        stats.apply_to(stats_row)

        goal.completed = True
        goal.completed_at = now
        goal.progress = 1.0

        skills = await self._reward_skills(uow, goal, exp, now, pending)
        self._activity.record(uow, "goal_complete", exp, f"完成目标: {goal.title}", now=now)
        pending.append((GOAL_COMPLETED, {"user_id": uow.user_id, "goal_id": goal.id, "exp_gained": exp}))

        return {
            "goal": goal.to_dict(),
            "stats": stats.to_dict(),
            "expGained": exp,
            "skills": skills,
            "leveledUp": levels > 0,
        }

    async def complete_goal(
        self, user_id: str, goal_id: Any, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Complete a goal and pay its XP.

        Raises:
            NotFoundError: Unknown goal
            InvalidOperationError: Goal already completed
        """
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("complete_goal", user_id=user_id, goal_id=goal_id)

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)
            result = await self._complete_in_uow(uow, goal, now, pending)

        await self._publish(pending)
        return result

    async def complete_goal_pomodoro(
        self,
        user_id: str,
        goal_id: Any,
        minutes: Any = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Pay the pomodoro reward for a focus session on a goal.

        The session is recorded and its minutes and cycle go into today's
        battle report; `minutes` defaults to `pomodoro.work_minutes`.

        Returns:
            {expGained, skills, stats, minutes, message}
        """
        user_id = InputValidator.validate_user_id(user_id)
        goal_id = InputValidator.validate_entity_id(goal_id, "goal_id")
        if minutes is None:
            minutes = self.get_config_int("pomodoro.work_minutes", 25)
        minutes = InputValidator.validate_positive_integer(minutes, "minutes", max_value=MAX_POMODORO_MINUTES)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("complete_goal_pomodoro", user_id=user_id, goal_id=goal_id)

        async with self._stores.unit_of_work(user_id) as uow:
            goal = await self._require_goal(uow, goal_id, for_update=True)
            exp = goal.pomodoro_exp_reward or self.get_config_int("goals.pomodoro_exp_reward", 10)

            stats_row, stats = await self._stats.load_for_update(uow, now, pending)
            stats, _ = self._stats.gain_experience(stats, exp, now, pending)
            stats.apply_to(stats_row)

            skills = await self._reward_skills(uow, goal, exp, now, pending)
            self._activity.record(uow, "goal_pomodoro_complete", exp, f"完成主线任务番茄钟: {goal.title}", now=now)
            self._battles.record_session(uow, now, minutes, goal_id=goal.id)
            await self._battles.record_battle(uow, now, goal.title, battle_minutes=minutes, cycles=1, goal_id=goal.id)

        pending.append(
            (POMODORO_COMPLETED, {"user_id": user_id, "goal_id": goal_id, "exp_gained": exp, "minutes": minutes})
        )
        await self._publish(pending)
        return {
            "expGained": exp,
            "skills": skills,
            "stats": stats.to_dict(),
            "minutes": minutes,
            "message": "番茄钟完成奖励已发放",
        }
