"""
Core event types for the EventBus.

Priority Levels
---------------
- CRITICAL (0): sequential, awaited, timeout-protected
- HIGH (10): sequential, awaited, timeout-protected
- NORMAL (50): concurrent (gather), awaited
- LOW (100): fire-and-forget background tasks
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# Payloads should stay JSON-serializable so they log cleanly
EventPayload = dict[str, Any]


class ListenerPriority(Enum):
    """Listener execution tier; lower values run first."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


# Event names published by the progression services
TASK_COMPLETED = "task.completed"
TASK_UNCOMPLETED = "task.uncompleted"
PLAYER_LEVELED_UP = "player.leveled_up"
ENERGY_RESTORED = "energy.restored"
GOAL_COMPLETED = "goal.completed"
SKILL_LEVELED_UP = "skill.leveled_up"
SKILL_EXPERIENCE_GAINED = "skill.experience_gained"
POMODORO_COMPLETED = "pomodoro.completed"
POMODORO_SESSION_RECORDED = "pomodoro.session_recorded"
TASK_CREATED = "task.created"
TASK_UPDATED = "task.updated"
TASK_DELETED = "task.deleted"
TASKS_RESET = "task.daily_reset"
GOAL_CREATED = "goal.created"
GOAL_UPDATED = "goal.updated"
GOAL_DELETED = "goal.deleted"
MILESTONE_COMPLETED = "goal.milestone_completed"
PLAYER_EXPERIENCE_GAINED = "player.experience_gained"
USER_REGISTERED = "user.registered"
CONFIG_CHANGED = "config.changed"


@dataclass(slots=True, frozen=True)
class EventListener:
    """
    A registered listener.

    Attributes
    ----------
    callback:
        Async or sync callable invoked with the event payload.
    priority:
        Execution tier.
    identifier:
        Unique id used for deduplication and unsubscription.
    once:
        Removed from the registry before its first execution.
    """

    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """Build a listener, deriving `module.qualname@event` when no identifier is given."""
        if identifier is None:
            module = getattr(callback, "__module__", "unknown")
            qualname = getattr(
                callback, "__qualname__", getattr(callback, "__name__", "callback")
            )
            identifier = f"{module}.{qualname}@{event_name}"

        return cls(
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
