"""
HTTP error responses.

Purpose
-------
Turn domain and infrastructure exceptions into `{message}` JSON responses
with the right status code. Services raise; this module only formats and
logs at the exception's own severity.

Mapping
-------
- LevelUpDomainException: its `status_code` (400 / 401 / 404)
- LevelUpInfrastructureException: 503
- Request schema errors: 400
- Unknown routes / methods: Starlette's status, `{message}` body
- Anything else: 500 with a generic message; details only in the log
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.exceptions import LevelUpInfrastructureException
from src.core.logging.logger import get_logger
from src.modules.shared.exceptions import (
    ErrorSeverity,
    InvalidOperationError,
    LevelUpDomainException,
    ValidationError,
    http_status_for,
)

logger = get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "服务器内部错误"
UNAVAILABLE_MESSAGE = "服务暂时不可用，请稍后再试"

_LOG_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def public_message(error: LevelUpDomainException) -> str:
    """User-facing text; validation and lifecycle errors show only their reason."""
    if isinstance(error, ValidationError):
        return error.validation_message
    if isinstance(error, InvalidOperationError):
        return error.reason
    return error.message


def format_error(error: Exception) -> Tuple[int, Dict[str, Any]]:
    """
    Returns:
        (status_code, body)

    Example:
        >>> format_error(TaskNotFoundError(3))[0]
        404
    """
    if isinstance(error, LevelUpDomainException):
        body: Dict[str, Any] = {"message": public_message(error), "code": error.error_code}
        return http_status_for(error), body
    if isinstance(error, LevelUpInfrastructureException):
        return http_status_for(error), {"message": UNAVAILABLE_MESSAGE}
    return 500, {"message": INTERNAL_ERROR_MESSAGE}


async def _domain_error_handler(request: Request, exc: LevelUpDomainException) -> JSONResponse:
    status, body = format_error(exc)
    logger.log(
        _LOG_LEVELS.get(exc.severity, logging.ERROR),
        f"Request rejected: {exc.error_code}",
        extra={
            "status_code": status,
            "path": request.url.path,
            "error_code": exc.error_code,
            "error_type": type(exc).__name__,
            "details": exc.details,
        },
    )
    return JSONResponse(status_code=status, content=body)


async def _infrastructure_error_handler(request: Request, exc: LevelUpInfrastructureException) -> JSONResponse:
    status, body = format_error(exc)
    logger.error(
        "Infrastructure failure during request",
        extra={
            "status_code": status,
            "path": request.url.path,
            "error_code": exc.error_code,
            "error_type": type(exc).__name__,
            "details": exc.details,
        },
        exc_info=exc,
    )
    return JSONResponse(status_code=status, content=body)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid')}" if location else "Invalid request body"
    logger.info(
        "Request schema validation failed",
        extra={"path": request.url.path, "error_count": len(errors)},
    )
    return JSONResponse(status_code=400, content={"message": message})


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error during request",
        extra={"path": request.url.path, "error_type": type(exc).__name__, "error": str(exc)},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"message": INTERNAL_ERROR_MESSAGE})


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LevelUpDomainException, _domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(LevelUpInfrastructureException, _infrastructure_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
