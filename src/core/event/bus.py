"""
In-process async EventBus.

Purpose
-------
Decouple the progression services from their side effects. Services publish
facts ("task.completed", "player.leveled_up"); cache invalidation, logging
and the pomodoro hand-off subscribe to them.

Design Decisions
----------------
- Instance-based, so tests can build a private bus.
- Tiered concurrency: CRITICAL/HIGH run sequentially with a timeout,
  NORMAL runs concurrently, LOW is fire-and-forget.
- Wildcards: "task.*", "*.completed" and "*" are supported.
- Error isolation: a failing listener is logged and never propagates to
  the publisher, so a broken subscriber cannot roll back a completion.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Optional

from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)


def matches(event_name: str, pattern: str) -> bool:
    """
    Check an event name against a wildcard pattern.

    Examples
    --------
    >>> matches("task.completed", "task.*")
    True
    >>> matches("task.completed", "*.completed")
    True
    >>> matches("task.completed", "goal.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern

    while "**" in pattern:
        pattern = pattern.replace("**", "*")

    parts = pattern.split("*")
    if not event_name.startswith(parts[0]):
        return False
    position = len(parts[0])

    for middle in parts[1:-1]:
        index = event_name.find(middle, position)
        if index < 0:
            return False
        position = index + len(middle)

    suffix = parts[-1]
    return event_name.endswith(suffix) and len(event_name) - len(suffix) >= position


class EventBus:
    """
    Async publish/subscribe bus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("player.leveled_up", on_level_up, priority=ListenerPriority.HIGH)
    >>> await bus.publish("player.leveled_up", {"user_id": "u1", "new_level": 2})
    """

    def __init__(
        self,
        config_manager: Any = None,
        *,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._listeners: dict[str, list[EventListener]] = {}
        self._wildcard_listeners: list[tuple[str, EventListener]] = []
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._published: dict[str, int] = {}
        self._errors: dict[str, int] = {}

        self._critical_timeout = self._load_timeout(
            "events.listener_timeout.critical_seconds", critical_timeout_seconds, 5.0
        )
        self._high_timeout = self._load_timeout(
            "events.listener_timeout.high_seconds", high_timeout_seconds, 5.0
        )

        logger.info(
            "EventBus initialized",
            extra={
                "critical_timeout_seconds": self._critical_timeout,
                "high_timeout_seconds": self._high_timeout,
            },
        )

    def _load_timeout(self, key: str, override: Optional[float], default: float) -> float:
        """Resolve a timeout: explicit override, then config, then default."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return float(default)
        try:
            return float(self._config_manager.get(key, default))
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Invalid listener timeout in config, using default",
                extra={"config_key": key, "default_value": default, "error": str(exc)},
            )
            return float(default)

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{name}'"
            )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier, for `unsubscribe()`

        Raises:
            ValueError: The callback does not take exactly one argument
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        if not allow_duplicates and self._is_registered(event_name, listener.identifier):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        if "*" in event_name:
            self._wildcard_listeners.append((event_name, listener))
        else:
            self._listeners.setdefault(event_name, []).append(listener)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": listener.once,
            },
        )
        return listener.identifier

    def _is_registered(self, event_name: str, identifier: str) -> bool:
        if "*" in event_name:
            return any(
                pattern == event_name and lst.identifier == identifier
                for pattern, lst in self._wildcard_listeners
            )
        return any(lst.identifier == identifier for lst in self._listeners.get(event_name, []))

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        """Remove a listener; returns True when one was removed."""
        if "*" in event_name:
            before = len(self._wildcard_listeners)
            self._wildcard_listeners = [
                (pattern, lst)
                for pattern, lst in self._wildcard_listeners
                if not (pattern == event_name and lst.identifier == identifier)
            ]
            removed = len(self._wildcard_listeners) != before
        else:
            current = self._listeners.get(event_name, [])
            kept = [lst for lst in current if lst.identifier != identifier]
            removed = len(kept) != len(current)
            if kept:
                self._listeners[event_name] = kept
            else:
                self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove every listener."""
        total = self.get_listener_count()
        self._listeners.clear()
        self._wildcard_listeners.clear()
        logger.info("EventBus: cleared all listeners", extra={"previous_listener_count": total})

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _extract_listeners(self, event_name: str) -> list[EventListener]:
        """Collect exact and wildcard listeners, pruning one-shot ones."""
        result: list[EventListener] = []

        exact = self._listeners.get(event_name, [])
        result.extend(exact)
        kept = [lst for lst in exact if not lst.once]
        if kept:
            self._listeners[event_name] = kept
        else:
            self._listeners.pop(event_name, None)

        remaining: list[tuple[str, EventListener]] = []
        for pattern, listener in self._wildcard_listeners:
            if matches(event_name, pattern):
                result.append(listener)
                if listener.once:
                    continue
            remaining.append((pattern, listener))
        self._wildcard_listeners = remaining

        result.sort(key=lambda lst: (lst.priority.value, lst.identifier))
        return result

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to every matching listener.

        Returns:
            Results of CRITICAL/HIGH/NORMAL listeners in execution order.
            LOW listeners run in the background and are not included.
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1

        if data.get("user_id") is not None:
            set_log_context(user_id=str(data["user_id"]))

        listeners = self._extract_listeners(event_name)
        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )
        if not listeners:
            return []

        results: list[Any] = []

        for listener in listeners:
            if listener.priority is ListenerPriority.CRITICAL:
                results.append(await self._run_with_timeout(listener, event_name, data, self._critical_timeout))
        for listener in listeners:
            if listener.priority is ListenerPriority.HIGH:
                results.append(await self._run_with_timeout(listener, event_name, data, self._high_timeout))

        normal = [lst for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(*[self._run_listener(lst, event_name, data) for lst in normal])
            )

        loop = asyncio.get_running_loop()
        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                task = loop.create_task(
                    self._run_listener(listener, event_name, data),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        timeout: Optional[float],
    ) -> Any:
        if timeout is None or timeout <= 0:
            return await self._run_listener(listener, event_name, payload)

        try:
            return await asyncio.wait_for(
                self._run_listener(listener, event_name, payload),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "timeout_seconds": timeout,
                },
            )
            return None

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
    ) -> Any:
        try:
            if asyncio.iscoroutinefunction(listener.callback):
                return await listener.callback(payload)

            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, listener.callback, payload)

        except Exception as exc:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        """Count listeners, or the listeners that would receive `event_name`."""
        if event_name:
            exact = len(self._listeners.get(event_name, []))
            wildcard = sum(1 for pattern, _ in self._wildcard_listeners if matches(event_name, pattern))
            return exact + wildcard
        return sum(len(v) for v in self._listeners.values()) + len(self._wildcard_listeners)

    def get_all_events(self) -> list[str]:
        keys = set(self._listeners.keys())
        keys.update(pattern for pattern, _ in self._wildcard_listeners)
        return sorted(keys)

    def get_metrics_summary(self) -> dict[str, Any]:
        total = sum(self._published.values())
        errors = sum(self._errors.values())
        return {
            "total_events_published": total,
            "events_by_type": dict(self._published),
            "total_errors": errors,
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
            "error_rate": round(errors / total * 100, 2) if total else 0.0,
        }

    async def drain(self) -> None:
        """Wait for outstanding LOW-tier background listeners (used at shutdown and in tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
