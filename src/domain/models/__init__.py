"""
Domain models package.

Rich domain models holding the progression rules, kept apart from the
SQLAlchemy schemas:

- Database models (src/database/models/): schema-only rows
- Domain models (src/domain/models/): validated objects with behavior

Services load a row, convert it (`from_row`), run the rules, and copy the
result back (`apply_to`) inside the same unit of work.
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    validate_non_negative,
    validate_positive,
)
from .task import Task
from .user_stats import UserStats

__all__ = [
    # Base classes
    "Entity",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    # Validators
    "validate_positive",
    "validate_non_negative",
    # Domain models
    "Task",
    "UserStats",
]
