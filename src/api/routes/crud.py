"""Generic create endpoint for tasks and goals."""

from typing import Any, Dict, Literal

from fastapi import APIRouter, Body, Depends, Query

from src.api.dependencies import get_container, get_user_id
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api/crud", tags=["crud"])


@router.post("", status_code=201)
async def create_resource(
    resource: Literal["tasks", "goals"] = Query(...),
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    if resource == "tasks":
        return await container.tasks.create_task(user_id, body)
    return await container.goals.create_goal(user_id, body)
