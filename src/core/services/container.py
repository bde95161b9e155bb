"""
Service Container
=================

Purpose
-------
Centralized dependency injection container for the domain services.
Builds each service once, in dependency order, and hands out the
singletons to the HTTP layer.

Responsibilities
----------------
- Initialize all domain services with required dependencies
- Wire the cache invalidation listeners onto the EventBus
- Manage service lifecycle (initialization, shutdown)

Non-Responsibilities
--------------------
- Infrastructure initialization (database, Redis, logging: see src.main)
- Business logic

Architecture Notes
------------------
- All domain services share the constructor prefix
  (config_manager, event_bus, logger); store-backed services also take the
  StoreProvider, composite services take their collaborators by keyword
- Construction order: activity -> stats -> battles -> skills -> ai -> tasks -> goals -> auth
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.cache.service import CacheService
from src.core.config.manager import ConfigManager
from src.core.event.types import ListenerPriority
from src.core.logging.logger import get_logger
from src.modules.activity import ActivityService
from src.modules.ai import AIService
from src.modules.auth import AuthService
from src.modules.battle import BattleReportService
from src.modules.goals import GoalService
from src.modules.skills import SkillService
from src.modules.stats import StatsService
from src.modules.tasks import TaskService

if TYPE_CHECKING:
    from logging import Logger

    from openai import AsyncOpenAI

    from src.core.event.bus import EventBus
    from src.modules.store.provider import StoreProvider

logger = get_logger(__name__)

# Every write path publishes under one of these namespaces with a user_id
CACHE_INVALIDATING_EVENTS = (
    "task.*",
    "goal.*",
    "skill.*",
    "player.*",
    "energy.*",
    "pomodoro.*",
)

SERVICE_COUNT = 8


class ServiceContainer:
    """
    Dependency injection container for all domain services.

    Usage:
        container = ServiceContainer(ConfigManager, event_bus, logger, stores)
        await container.initialize()

        result = await container.tasks.complete_task(user_id, task_id)
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
        ai_client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._stores = stores
        self._ai_client = ai_client

        self._activity: Optional[ActivityService] = None
        self._stats: Optional[StatsService] = None
        self._battles: Optional[BattleReportService] = None
        self._skills: Optional[SkillService] = None
        self._ai: Optional[AIService] = None
        self._tasks: Optional[TaskService] = None
        self._goals: Optional[GoalService] = None
        self._auth: Optional[AuthService] = None

        self._cache_listener_ids: list[tuple[str, str]] = []
        self._initialized = False

        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        """
        Initialize all services.

        Call this during application startup after ConfigManager and EventBus
        are ready.
        """
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        try:
            self._activity = self._create_service("activity", ActivityService, stores=self._stores)
            self._stats = self._create_service("stats", StatsService, stores=self._stores)
            self._battles = self._create_service(
                "battles",
                BattleReportService,
                stores=self._stores,
                stats=self._stats,
            )
            self._skills = self._create_service(
                "skills",
                SkillService,
                stores=self._stores,
                activity=self._activity,
            )
            self._ai = self._create_service("ai", AIService, client=self._ai_client)
            self._tasks = self._create_service(
                "tasks",
                TaskService,
                stores=self._stores,
                stats=self._stats,
                skills=self._skills,
                activity=self._activity,
                ai=self._ai,
                battles=self._battles,
            )
            self._goals = self._create_service(
                "goals",
                GoalService,
                stores=self._stores,
                stats=self._stats,
                skills=self._skills,
                activity=self._activity,
                battles=self._battles,
            )
            self._auth = self._create_service("auth", AuthService, stores=self._stores)

            self._subscribe_cache_invalidation()

            self._init_end = time.perf_counter()
            self._initialized = True

            extra_data: Dict[str, Any] = {
                "total_time_seconds": round(self._init_end - self._init_start, 3),
                "service_count": len(self._service_init_times),
                "ai_enabled": self._ai.enabled,
                "persistent_store": self._stores.persistent_store is not None,
            }
            if self._service_init_times:
                slowest = max(self._service_init_times, key=self._service_init_times.__getitem__)
                extra_data["slowest_service"] = slowest
                extra_data["slowest_duration"] = round(self._service_init_times[slowest], 3)

            self._logger.info("Service container initialized successfully", extra=extra_data)

        except Exception as e:
            self._logger.critical(
                "Service container initialization failed - server cannot start",
                exc_info=True,
                extra={"error": str(e)},
            )
            raise

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        """
        Construct one service with the shared prefix plus `dependencies`.

        Raises:
            Exception: If service initialization fails
        """
        start = time.perf_counter()
        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    def _subscribe_cache_invalidation(self) -> None:
        for pattern in CACHE_INVALIDATING_EVENTS:
            identifier = self._event_bus.subscribe(
                pattern,
                CacheService.on_user_changed,
                priority=ListenerPriority.HIGH,
                identifier=f"cache_invalidation:{pattern}",
            )
            self._cache_listener_ids.append((pattern, identifier))

    async def shutdown(self) -> None:
        """
        Shutdown all services.

        Call this during application shutdown for graceful cleanup.
        """
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")

        for pattern, identifier in self._cache_listener_ids:
            self._event_bus.unsubscribe(pattern, identifier)
        self._cache_listener_ids.clear()
        await self._event_bus.drain()

        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, bool | float | int | None]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
            "all_services_available": self._initialized and len(self._service_init_times) == SERVICE_COUNT,
        }

    def _require(self, service: Optional[Any]) -> Any:
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def stores(self) -> StoreProvider:
        return self._stores

    @property
    def activity(self) -> ActivityService:
        return self._require(self._activity)

    @property
    def stats(self) -> StatsService:
        return self._require(self._stats)

    @property
    def battles(self) -> BattleReportService:
        return self._require(self._battles)

    @property
    def skills(self) -> SkillService:
        return self._require(self._skills)

    @property
    def ai(self) -> AIService:
        return self._require(self._ai)

    @property
    def tasks(self) -> TaskService:
        return self._require(self._tasks)

    @property
    def goals(self) -> GoalService:
        return self._require(self._goals)

    @property
    def auth(self) -> AuthService:
        return self._require(self._auth)
