"""Task endpoints: update, delete, completion, pomodoro, daily reset, AI-assisted creation."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from src.api.dependencies import get_container, get_user_id
from src.api.schemas import AnalyzeTaskRequest, IntelligentCreateRequest, PomodoroRequest
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


# Fixed paths first so they are not read as a task id


@router.post("/intelligent-create", status_code=201)
async def intelligent_create(
    body: IntelligentCreateRequest,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.intelligent_create(user_id, body.description)


@router.post("/analyze-task")
async def analyze_task(
    body: AnalyzeTaskRequest,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.analyze_task(body.title, body.description)


@router.post("/reset-daily-habits")
async def reset_daily_habits(
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.reset_daily_habits(user_id)


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.update_task(user_id, task_id, body)


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.delete_task(user_id, task_id)


@router.post("/{task_id}/complete")
async def complete_task(
    task_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.complete_task(user_id, task_id)


@router.post("/{task_id}/uncomplete")
async def uncomplete_task(
    task_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.tasks.uncomplete_task(user_id, task_id)


@router.post("/{task_id}/pomodoro-complete")
async def complete_pomodoro(
    task_id: str,
    body: Optional[PomodoroRequest] = None,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    minutes = body.minutes if body is not None else 25
    return await container.tasks.complete_pomodoro(user_id, task_id, minutes)
