"""
Skill Service
=============

Purpose
-------
Per-user skills that level on the same curve as the user, independently
per skill. The six core skills are created lazily the first time a user's
skills are read or a completion needs one.

Skill Matching
--------------
- `find_skill_by_tag`: one skill for a free-form name (AI output); exact
  name match first, then the keyword map onto a core skill
- `matching_skills`: every skill whose name contains a goal tag or is
  contained in it

Events
------
- skill.experience_gained (every direct grant)
- skill.leveled_up
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from src.core.database.base import utc_now
from src.core.event.types import SKILL_EXPERIENCE_GAINED, SKILL_LEVELED_UP
from src.core.validation.input_validator import InputValidator
from src.database.models import Skill
from src.domain.progression import leveling
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import NotFoundError
from src.modules.skills.constants import CORE_SKILLS, resolve_core_skill_name

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.activity.service import ActivityService
    from src.modules.store.base import StoreSession
    from src.modules.store.provider import StoreProvider

PendingEvent = Tuple[str, Dict[str, Any]]


class SkillService(BaseService):
    """
    Public Methods
    --------------
    - list_skills() -> Skills, core skills created if missing
    - add_skill_exp() -> Grant XP to one skill
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
        activity: ActivityService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores
        self._activity = activity

    # ========================================================================
    # UNIT-OF-WORK HELPERS
    # ========================================================================

    async def ensure_core_skills(self, uow: StoreSession) -> List[Skill]:
        skills = await uow.list_skills()
        existing = {skill.name for skill in skills}
        base = self.get_config("leveling.base", leveling.DEFAULT_BASE)
        growth = self.get_config("leveling.growth", leveling.DEFAULT_GROWTH)

        created = 0
        for core in CORE_SKILLS:
            if core["name"] in existing:
                continue
            skills.append(
                uow.add_skill(
                    Skill(
                        user_id=uow.require_user(),
                        name=core["name"],
                        level=1,
                        exp=0,
                        max_exp=leveling.experience_threshold(1, base, growth),
                        color=core["color"],
                        icon=core["icon"],
                        category=core["category"],
                        skill_type="core",
                    )
                )
            )
            created += 1

        if created:
            await uow.flush()
            self.log.info(
                "Initialized core skills",
                extra={"user_id": uow.user_id, "skills_created": created},
            )
        return skills

    def grant_exp(
        self,
        uow: StoreSession,
        skill: Skill,
        amount: int,
        now: datetime,
        pending: Optional[List[PendingEvent]] = None,
    ) -> int:
        """
        Add XP to `skill` in place.

        Returns:
            Levels gained
        """
        if amount <= 0:
            return 0

        base = self.get_config("leveling.base", leveling.DEFAULT_BASE)
        growth = self.get_config("leveling.growth", leveling.DEFAULT_GROWTH)
        old_level = max(1, skill.level or 1)
        state = leveling.apply_experience(old_level, max(0, skill.exp or 0), amount, base, growth)

        skill.level = state.level
        skill.exp = state.experience
        skill.max_exp = state.experience_to_next

        gained = leveling.levels_gained(old_level, state)
        if gained > 0:
            self._activity.record(
                uow,
                "skill_levelup",
                0,
                f"技能升级: {skill.name} Lv.{state.level}",
                skill_id=skill.id,
                now=now,
            )
            if pending is not None:
                pending.append(
                    (
                        SKILL_LEVELED_UP,
                        {
                            "user_id": uow.user_id,
                            "skill_id": skill.id,
                            "skill_name": skill.name,
                            "old_level": old_level,
                            "new_level": state.level,
                        },
                    )
                )
        return gained

    async def find_skill_by_tag(self, uow: StoreSession, tag: Optional[str]) -> Optional[Skill]:
        if not tag or not tag.strip():
            return None
        skills = await self.ensure_core_skills(uow)
        tag = tag.strip()
        for skill in skills:
            if skill.name == tag:
                return skill
        target = resolve_core_skill_name(tag)
        return next((skill for skill in skills if skill.name == target), None)

    async def matching_skills(self, uow: StoreSession, tags: Iterable[str]) -> List[Skill]:
        skills = await self.ensure_core_skills(uow)
        matched: List[Skill] = []
        for tag in tags:
            needle = tag.strip().lower()
            if not needle:
                continue
            for skill in skills:
                name = skill.name.lower()
                if (needle in name or name in needle) and skill not in matched:
                    matched.append(skill)
        return matched

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def list_skills(self, user_id: str) -> List[Dict[str, Any]]:
        user_id = InputValidator.validate_user_id(user_id)
        async with self._stores.unit_of_work(user_id) as uow:
            skills = await self.ensure_core_skills(uow)
            return [skill.to_dict() for skill in skills]

    async def add_skill_exp(
        self,
        user_id: str,
        skill_id: Any,
        amount: Any,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Grant XP to one skill.

        Raises:
            NotFoundError: Unknown skill or owned by another user
            ValidationError: amount is not a positive integer
        """
        user_id = InputValidator.validate_user_id(user_id)
        skill_id = InputValidator.validate_entity_id(skill_id, "skill_id")
        amount = InputValidator.validate_positive_integer(amount, "amount", max_value=1_000_000)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("add_skill_exp", user_id=user_id, skill_id=skill_id, amount=amount)

        async with self._stores.unit_of_work(user_id) as uow:
            skill = await uow.get_skill(skill_id, for_update=True)
            if skill is None:
                raise NotFoundError("Skill", skill_id)
            gained = self.grant_exp(uow, skill, amount, now, pending)
            result = {"skill": skill.to_dict(), "expGained": amount, "leveledUp": gained > 0}
            pending.insert(
                0,
                (
                    SKILL_EXPERIENCE_GAINED,
                    {"user_id": user_id, "skill_id": skill_id, "amount": amount, "level": skill.level},
                ),
            )

        for event_type, payload in pending:
            await self.emit_event(event_type, payload)
        return result
