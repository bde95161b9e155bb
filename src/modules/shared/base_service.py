"""
Base Service Foundation

Purpose
-------
Common base for the Level Up Solo services (stats, tasks, skills, goals,
activity, AI, auth). Services validate input, run the progression engine
inside a unit of work, emit domain events and return JSON-ready dicts.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Config access through the ConfigManager (game-balance values)
- Event emission on the EventBus
- A validation helper that raises the domain ValidationError

What this class does NOT do:
- Open transactions (the data store's `unit_of_work()` does)
- Hold progression rules (`src.domain.progression` does)

Usage
-----
    class GoalService(BaseService):
        def __init__(self, config_manager, event_bus, logger, store_provider):
            super().__init__(config_manager, event_bus, logger)
            self._stores = store_provider

        async def complete_goal(self, user_id: str, goal_id: int):
            self.log_operation("complete_goal", user_id=user_id, goal_id=goal_id)
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: ConfigManager class (or a stand-in exposing `get`)
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Read a game-balance value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        from src.core.exceptions import ConfigurationError

        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def get_config_int(self, key: str, default: int) -> int:
        value = self.get_config(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            self.log.warning(
                f"Config value for {key} is not an integer, using default",
                extra={"key": key, "value": repr(value), "default": default},
            )
            return default

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Publish a domain event.

        Args:
            event_type: Event name (e.g. "task.completed")
            data: Event payload; should carry `user_id`
            context: Optional extra keys merged into the payload
        """
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def validate_non_negative_int(self, value: int, name: str) -> None:
        """
        Raises:
            ValidationError: If value is negative
        """
        from .exceptions import ValidationError

        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(
                name, f"{name} must be a non-negative integer, got {value}"
            )
