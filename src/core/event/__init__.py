"""
Event system.

Provides the in-process async EventBus and a process-wide default instance.
"""

from .bus import EventBus, matches
from .types import (
    CONFIG_CHANGED,
    ENERGY_RESTORED,
    GOAL_COMPLETED,
    PLAYER_LEVELED_UP,
    POMODORO_COMPLETED,
    POMODORO_SESSION_RECORDED,
    SKILL_LEVELED_UP,
    SKILL_EXPERIENCE_GAINED,
    TASK_COMPLETED,
    TASK_UNCOMPLETED,
    TASK_CREATED,
    TASK_UPDATED,
    TASK_DELETED,
    TASKS_RESET,
    GOAL_CREATED,
    GOAL_UPDATED,
    GOAL_DELETED,
    MILESTONE_COMPLETED,
    PLAYER_EXPERIENCE_GAINED,
    USER_REGISTERED,
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

# Global runtime singleton EventBus
event_bus = EventBus()

__all__ = [
    "event_bus",
    "EventBus",
    "matches",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
    "TASK_COMPLETED",
    "TASK_UNCOMPLETED",
    "PLAYER_LEVELED_UP",
    "ENERGY_RESTORED",
    "GOAL_COMPLETED",
    "SKILL_LEVELED_UP",
    "SKILL_EXPERIENCE_GAINED",
    "POMODORO_COMPLETED",
    "POMODORO_SESSION_RECORDED",
    "CONFIG_CHANGED",
    "TASK_CREATED",
    "TASK_UPDATED",
    "TASK_DELETED",
    "TASKS_RESET",
    "GOAL_CREATED",
    "GOAL_UPDATED",
    "GOAL_DELETED",
    "MILESTONE_COMPLETED",
    "PLAYER_EXPERIENCE_GAINED",
    "USER_REGISTERED",
]
