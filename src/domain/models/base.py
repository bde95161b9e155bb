"""
Base domain model classes.

Purpose
-------
Foundational abstractions for the rich domain models that hold the
progression rules, kept separate from the SQLAlchemy schemas in
`src.database.models`.

Design Patterns
---------------
- **Entity**: Objects with identity that persist over time
- **Aggregate Root**: Consistency boundary for domain operations
- **Domain Events**: Communicate state changes to other parts of the system

Usage Example
-------------
>>> class Habit(AggregateRoot):
...     def check_in(self) -> None:
...         self.streak += 1
...         self.add_domain_event("habit.checked_in", {
...             "task_id": self.id,
...             "streak": self.streak,
...         })
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.modules.shared.exceptions import ValidationError


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change recorded by an aggregate, published by the service layer
    after the transaction commits.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "task.completed")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same ID are the same entity even if their
    attributes differ. Entities record domain events for significant
    state transitions.
    """

    def __init__(self, entity_id: Optional[int]) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> Optional[int]:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity) or self.id is None:
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """
        Record a domain event to be published.

        Examples
        --------
        >>> self.add_domain_event("task.completed", {
        ...     "task_id": self.id,
        ...     "user_id": self.user_id,
        ... })
        """
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Clear and return all pending domain events."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        """Pending domain events, without clearing them."""
        return self._domain_events.copy()


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot(Entity):
    """
    Consistency boundary for domain operations.

    All changes to the aggregate go through its methods, which keep the
    aggregate's invariants and record domain events.
    """

    pass


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(ValidationError):
    """
    Raised when a domain invariant or input rule is violated.

    Subclasses the service-level `ValidationError` so the HTTP layer maps
    both to a 400 without special casing.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(field or "value", message)
        self.message = message
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    """
    Raises
    ------
    DomainValidationError
        If value is not positive
    """
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    """
    Raises
    ------
    DomainValidationError
        If value is negative
    """
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )
