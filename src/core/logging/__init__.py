"""
Logging infrastructure.

Structured logging with per-request context:
- JSON logs in production and in the rotating file, colored text in development
- ContextVar-based request context (`LogContext`, `set_log_context`)
- Setup, teardown and queue health
"""

from src.core.logging.logger import (
    LogContext,
    LoggerConfig,
    LoggingHealth,
    get_logger,
    get_logging_health,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "get_logging_health",
    "LoggingHealth",
    "LogContext",
    "set_log_context",
    "LoggerConfig",
]
