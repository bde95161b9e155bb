"""
Stats Service
=============

Purpose
-------
Owns the per-user `UserStats` row: lazy creation, the daily energy refill,
XP gain with level roll-over, and the manual energy restore. Other services
(tasks, goals) call `load_for_update` and `gain_experience` inside their
own unit of work so one completion is one transaction.

Domain
------
- Stats are created on first access: level 1, 0 XP, full energy
- Every load applies `daily_reset_if_needed` first
- XP follows the leveling curve from config (`leveling.base`, `leveling.growth`)

Events
------
- energy.restored: daily refill or manual restore
- player.experience_gained
- player.leveled_up: one event per gain, with old and new level
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from src.core.database.base import utc_now
from src.core.event.types import ENERGY_RESTORED, PLAYER_EXPERIENCE_GAINED, PLAYER_LEVELED_UP
from src.core.validation.input_validator import InputValidator
from src.database.models import UserStatsRow
from src.domain.models.user_stats import UserStats
from src.domain.progression import energy, leveling
from src.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.store.base import StoreSession
    from src.modules.store.provider import StoreProvider


PendingEvent = Tuple[str, Dict[str, Any]]


class StatsService(BaseService):
    """
    Service for user stats (level, XP, energy balls).

    Public Methods
    --------------
    - get_stats() -> Current stats, daily refill applied
    - add_experience() -> Grant XP outside a task flow
    - restore_energy() -> Refill energy to the cap
    - daily_reset() -> Refill if the calendar day changed
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores

    # ========================================================================
    # ENGINE HELPERS (used inside other services' units of work)
    # ========================================================================

    def _curve(self) -> Tuple[Any, Any]:
        return (
            self.get_config("leveling.base", leveling.DEFAULT_BASE),
            self.get_config("leveling.growth", leveling.DEFAULT_GROWTH),
        )

    def gain_experience(
        self,
        stats: UserStats,
        amount: int,
        now: datetime,
        pending: Optional[List[PendingEvent]] = None,
    ) -> Tuple[UserStats, int]:
        """
        Apply `amount` XP to `stats`.

        Returns:
            (new stats, levels gained)
        """
        base, growth = self._curve()
        state = leveling.apply_experience(stats.level, stats.experience, amount, base, growth)
        gained = leveling.levels_gained(stats.level, state)
        updated = stats.evolve(
            now,
            level=state.level,
            experience=state.experience,
            experience_to_next=state.experience_to_next,
        )

        if pending is not None and amount > 0:
            pending.append(
                (
                    PLAYER_EXPERIENCE_GAINED,
                    {"user_id": stats.user_id, "amount": amount, "level": updated.level},
                )
            )
            if gained > 0:
                pending.append(
                    (
                        PLAYER_LEVELED_UP,
                        {
                            "user_id": stats.user_id,
                            "old_level": stats.level,
                            "new_level": updated.level,
                            "levels_gained": gained,
                        },
                    )
                )
        return updated, gained

    async def load_for_update(
        self,
        uow: StoreSession,
        now: datetime,
        pending: Optional[List[PendingEvent]] = None,
    ) -> Tuple[UserStatsRow, UserStats]:
        """
        Lock (or create) the stats row and apply the daily refill.

        Returns:
            (row, snapshot); the row already reflects the snapshot
        """
        row, stats, _ = await self.load_and_refill(uow, now, pending)
        return row, stats

    async def load_and_refill(
        self,
        uow: StoreSession,
        now: datetime,
        pending: Optional[List[PendingEvent]] = None,
    ) -> Tuple[UserStatsRow, UserStats, bool]:
        """`load_for_update` that also reports whether today's refill just happened."""
        row = await uow.get_stats(for_update=True)

        if row is None:
            base, growth = self._curve()
            stats = UserStats.new(
                uow.require_user(),
                max_energy_balls=self.get_config_int("energy.max_balls", 18),
                now=now,
            ).evolve(now, experience_to_next=leveling.experience_threshold(1, base, growth))
            row = uow.add_stats(stats.apply_to(UserStatsRow()))
            self.log.info(
                "Created user stats",
                extra={"user_id": stats.user_id, "max_energy_balls": stats.max_energy_balls},
            )
            return row, stats, False

        stats, restored = energy.daily_reset_if_needed(UserStats.from_row(row), now)
        if restored:
            stats.apply_to(row)
            self.log.info(
                "Daily energy refill",
                extra={"user_id": stats.user_id, "energy_balls": stats.energy_balls},
            )
            if pending is not None:
                pending.append(
                    (
                        ENERGY_RESTORED,
                        {"user_id": stats.user_id, "energy_balls": stats.energy_balls, "reason": "daily"},
                    )
                )
        return row, stats, restored

    async def publish_all(self, pending: List[PendingEvent]) -> None:
        """Publish events collected during a unit of work, after it committed."""
        for event_type, payload in pending:
            await self.emit_event(event_type, payload)

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def get_stats(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Current stats for `user_id`, created on first access.

        Example:
            >>> await stats_service.get_stats("demo_user")
            {"level": 1, "experience": 0, "energyBalls": 18, ...}
        """
        user_id = InputValidator.validate_user_id(user_id)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        async with self._stores.unit_of_work(user_id) as uow:
            _, stats = await self.load_for_update(uow, now, pending)

        await self.publish_all(pending)
        return stats.to_dict()

    async def add_experience(
        self, user_id: str, amount: int, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Grant `amount` XP.

        Raises:
            ValidationError: amount is not a positive integer
        """
        user_id = InputValidator.validate_user_id(user_id)
        amount = InputValidator.validate_positive_integer(amount, "amount", max_value=1_000_000)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("add_experience", user_id=user_id, amount=amount)

        async with self._stores.unit_of_work(user_id) as uow:
            row, stats = await self.load_for_update(uow, now, pending)
            stats, gained = self.gain_experience(stats, amount, now, pending)
            stats.apply_to(row)

        await self.publish_all(pending)
        return {
            "stats": stats.to_dict(),
            "expGained": amount,
            "levelsGained": gained,
            "leveledUp": gained > 0,
        }

    async def restore_energy(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Refill energy balls to the cap; returns the stats."""
        user_id = InputValidator.validate_user_id(user_id)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        self.log_operation("restore_energy", user_id=user_id)

        async with self._stores.unit_of_work(user_id) as uow:
            row, stats = await self.load_for_update(uow, now, pending)
            stats = energy.restore(stats, now)
            stats.apply_to(row)

        pending.append(
            (ENERGY_RESTORED, {"user_id": user_id, "energy_balls": stats.energy_balls, "reason": "manual"})
        )
        await self.publish_all(pending)
        return stats.to_dict()

    async def daily_reset(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Refill energy if the UTC day changed since the last refill.

        Returns:
            {"stats": ..., "restored": bool}
        """
        user_id = InputValidator.validate_user_id(user_id)
        now = now or utc_now()
        pending: List[PendingEvent] = []

        async with self._stores.unit_of_work(user_id) as uow:
            _, stats, restored = await self.load_and_refill(uow, now, pending)

        await self.publish_all(pending)
        return {"stats": stats.to_dict(), "restored": restored}
