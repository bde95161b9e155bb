"""
Shared Module

Foundations used by every service module:
- BaseService: logging, config access, event emission
- BaseRepository: type-safe SQLAlchemy access with FOR UPDATE support
- Domain exceptions and their HTTP status mapping

Usage
-----
    from src.modules.shared import (
        BaseService,
        BaseRepository,
        InsufficientEnergyError,
    )
"""

from __future__ import annotations

from .base_repository import BaseRepository
from .base_service import BaseService

from .exceptions import (
    DuplicateCompletionError,
    ErrorSeverity,
    InsufficientEnergyError,
    InsufficientResourcesError,
    InvalidOperationError,
    InvalidUncompleteError,
    LevelUpDomainException,
    StructuredError,
    NotFoundError,
    TaskNotFoundError,
    UnauthorizedError,
    ValidationError,
    get_error_severity,
    http_status_for,
    should_alert,
)

__all__ = [
    # Base patterns
    "BaseService",
    "BaseRepository",
    # Exceptions
    "StructuredError",
    "LevelUpDomainException",
    "ErrorSeverity",
    "InsufficientResourcesError",
    "InsufficientEnergyError",
    "NotFoundError",
    "TaskNotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "DuplicateCompletionError",
    "InvalidUncompleteError",
    "InvalidOperationError",
    "get_error_severity",
    "should_alert",
    "http_status_for",
]
