"""FastAPI dependencies: service container access and bearer authentication."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.core.logging.logger import set_log_context
from src.core.services.container import ServiceContainer
from src.modules.shared.exceptions import UnauthorizedError

bearer_scheme = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Verified access-token claims from `Authorization: Bearer <token>`.

    Raises:
        UnauthorizedError: Missing, malformed, expired or refresh token
    """
    if credentials is None:
        raise UnauthorizedError("missing_token")
    claims = container.auth.verify(credentials.credentials)
    set_log_context(user_id=claims["userId"])
    return claims


async def get_user_id(claims: Dict[str, Any] = Depends(get_claims)) -> str:
    return str(claims["userId"])
