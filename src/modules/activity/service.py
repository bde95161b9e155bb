"""
Activity Service

Append-only activity history. Entries are written inside the unit of work
of the operation they describe, so a rolled-back completion leaves no log
line behind.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.base import utc_now
from src.core.validation.input_validator import InputValidator
from src.database.models import ActivityLog
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.store.base import StoreSession
    from src.modules.store.provider import StoreProvider


ACTIVITY_ACTIONS = (
    "task_complete",
    "habit_complete",
    "task_uncomplete",
    "goal_complete",
    "goal_pomodoro_complete",
    "skill_levelup",
)

MAX_ACTIVITY_LIMIT = 200


class ActivityService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores

    def record(
        self,
        uow: StoreSession,
        action: str,
        exp_gained: int = 0,
        description: Optional[str] = None,
        task_id: Optional[int] = None,
        skill_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ActivityLog:
        """
        Append one entry to the user's history.

        Raises:
            ValidationError: Unknown action or negative exp_gained
        """
        action = InputValidator.validate_choice(action, "action", ACTIVITY_ACTIONS)
        self.validate_non_negative_int(exp_gained, "exp_gained")

        entry = uow.add_activity(
            ActivityLog(
                user_id=uow.require_user(),
                task_id=task_id,
                skill_id=skill_id,
                exp_gained=exp_gained,
                action=action,
                description=description,
                date=now or utc_now(),
            )
        )

        self.log.debug(
            "Activity logged",
            extra={"user_id": uow.user_id, "action": action, "exp_gained": exp_gained},
        )
        return entry

    async def list_activity(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent entries first."""
        user_id = InputValidator.validate_user_id(user_id)
        limit = InputValidator.validate_positive_integer(limit, "limit", max_value=MAX_ACTIVITY_LIMIT)

        async with self._stores.unit_of_work(user_id) as uow:
            entries = await uow.list_activity(limit)
            return [entry.to_dict() for entry in entries]
