"""
Domain exceptions for Level Up Solo.

Purpose
-------
Define the structured, domain-specific exception hierarchy for progression
logic. These exceptions are raised by the domain layer and services for
business rule violations, resource constraints, and user-facing errors. The
HTTP layer translates them into `{message}` JSON responses.

Design Notes
------------
- All domain exceptions inherit from `LevelUpDomainException`, itself a
  `StructuredError` (shared with the infrastructure hierarchy).
- Each exception carries:
  - `message`: human-readable description, safe to show to the user
  - `details`: additional structured context (dict-like)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
  - `status_code`: HTTP status the API layer should answer with
- None of these are fatal; every one maps to a 4xx response.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning (e.g., duplicate completions)
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., auth failures)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # System-level failures requiring immediate action


class StructuredError(Exception):
    """
    Exception carrying the fields the HTTP layer and the logs need.

    Both the domain hierarchy below and the infrastructure hierarchy in
    `src.core.exceptions` derive from this; subclasses tune the class-level
    defaults instead of passing them on every raise.
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.error_code}] {self.message}"
        return f"[{self.error_code}] {self.message} | Details: {self.details}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class LevelUpDomainException(StructuredError):
    """
    Base for business-rule violations; every subclass maps to a 4xx.

    Example:
        >>> raise LevelUpDomainException("Goal already completed", {"goal_id": 7})
    """

    status_code = 400


class InsufficientResourcesError(LevelUpDomainException):
    """
    Raised when a user lacks a required resource for an action.

    Args:
        resource: Name of the resource type (e.g., "energy_balls")
        required: Amount required for the action
        current: Amount the user currently has
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, resource: str, required: int, current: int) -> None:
        self.resource = resource
        self.required = required
        self.current = current
        message = f"Insufficient {resource}: need {required:,}, have {current:,}"
        super().__init__(
            message,
            details={
                "resource": resource,
                "required": required,
                "current": current,
                "deficit": required - current,
            },
            error_code=f"INSUFFICIENT_{resource.upper()}",
        )


class InsufficientEnergyError(InsufficientResourcesError):
    """
    Raised when a completion costs more energy balls than the user holds.

    The stats are left untouched; callers check `can_afford` first or
    surface this to the user as a 400.
    """

    def __init__(self, required: int, current: int) -> None:
        super().__init__("energy_balls", required, current)
        self.message = f"能量球不足: 需要 {required} 个, 当前 {current} 个"
        self.error_code = "INSUFFICIENT_ENERGY"


class NotFoundError(LevelUpDomainException):
    """
    Raised when a requested entity does not exist or is not owned by the caller.

    Ownership failures are reported as not-found so other users' ids
    are not disclosed.

    Args:
        resource_type: Type of resource (e.g., "Task", "Goal", "Skill")
        identifier: Optional identifier for the missing resource
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    status_code = 404

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class TaskNotFoundError(NotFoundError):
    """Raised when a task id is unknown or belongs to another user."""

    def __init__(self, task_id: Any) -> None:
        super().__init__("Task", task_id)
        self.message = "任务未找到"


class UnauthorizedError(LevelUpDomainException):
    """
    Raised when a request carries no valid bearer token or bad credentials.

    Args:
        reason: Why authentication failed (kept in details, not shown)
        message: User-facing message
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    status_code = 401

    def __init__(self, reason: str = "missing_token", message: str = "未授权") -> None:
        self.reason = reason
        super().__init__(message, details={"reason": reason}, error_code="UNAUTHORIZED")


class ValidationError(LevelUpDomainException):
    """
    Raised when user input fails domain validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class DuplicateCompletionError(LevelUpDomainException):
    """
    Raised when a habit is completed a second time on the same calendar day.

    The habit's streak, value, and dates are left unchanged.
    """

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG

    def __init__(self, task_id: Optional[int] = None) -> None:
        self.task_id = task_id
        super().__init__(
            "今天已经完成过这个习惯了",
            details={"task_id": task_id},
            error_code="DUPLICATE_COMPLETION",
        )


class InvalidUncompleteError(LevelUpDomainException):
    """Raised when undoing a completion that did not happen today."""

    DEFAULT_SEVERITY = ErrorSeverity.DEBUG

    def __init__(self, task_id: Optional[int] = None) -> None:
        self.task_id = task_id
        super().__init__(
            "只能取消今天完成的习惯",
            details={"task_id": task_id},
            error_code="INVALID_UNCOMPLETE",
        )


class InvalidOperationError(LevelUpDomainException):
    """
    Raised when an action violates a lifecycle rule.

    Args:
        action: Description of the invalid action
        reason: Explanation of why it's not allowed

    Example:
        >>> raise InvalidOperationError(
        ...     "complete_task",
        ...     "Task is already completed"
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(
            f"Invalid operation '{action}': {reason}",
            details={"action": action, "reason": reason},
            error_code=f"INVALID_{action.upper()}",
        )


# Utility functions for exception handling patterns


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity for logging; anything unstructured counts as an ERROR."""
    if isinstance(exc, StructuredError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)


def http_status_for(exc: Exception) -> int:
    """HTTP status for `exc`: the exception's own code, 500 for anything unstructured."""
    if isinstance(exc, StructuredError):
        return exc.status_code
    return 500
