"""
Infrastructure exceptions for Level Up Solo.

Purpose
-------
Failures of the machinery rather than of the user: the database, the
configuration and third-party services. The HTTP layer answers them with
a 503 and a generic message; AI flows catch `ExternalServiceError` and
fall back to deterministic answers instead.

Design Notes
------------
- All infrastructure exceptions inherit from `LevelUpInfrastructureException`,
  which shares `StructuredError` (message, details, severity, retryability,
  error code) with the domain hierarchy in `src.modules.shared.exceptions`.
"""

from __future__ import annotations

from typing import Optional

from src.modules.shared.exceptions import ErrorSeverity, StructuredError


class LevelUpInfrastructureException(StructuredError):
    """Base for infrastructure failures; never caused by user input."""

    status_code = 503


class ConfigurationError(LevelUpInfrastructureException):
    """
    Raised when a configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(LevelUpInfrastructureException):
    """
    Raised when database operations fail.

    Args:
        operation: Description of the database operation that failed
        original_error: The underlying database exception
    """

    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )


class ExternalServiceError(LevelUpInfrastructureException):
    """
    Raised when a third-party API (OpenAI) fails or answers garbage.

    AI flows catch this and substitute a deterministic fallback.
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, service: str, operation: str, original_error: Optional[Exception] = None) -> None:
        self.service = service
        self.operation = operation
        self.original_error = original_error
        reason = str(original_error) if original_error else "unavailable"
        super().__init__(
            f"{service} error during {operation}: {reason}",
            details={
                "service": service,
                "operation": operation,
                "error_type": type(original_error).__name__ if original_error else None,
            },
            error_code=f"{service.upper()}_ERROR",
        )
