"""Authentication endpoints: login, register, refresh, current user."""

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_claims, get_container
from src.api.schemas import AuthRequest
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("")
async def authenticate(
    body: AuthRequest,
    action: Literal["login", "register", "refresh"] = Query(...),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    if action == "login":
        return await container.auth.login(body.email, body.password)
    if action == "register":
        return await container.auth.register(body.email, body.password, body.first_name, body.last_name)
    return await container.auth.refresh(body.refresh_token)


@router.get("/user")
async def current_user(
    claims: Dict[str, Any] = Depends(get_claims),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.auth.current_user(claims)
