"""Goal and milestone endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends

from src.api.dependencies import get_container, get_user_id
from src.api.schemas import PomodoroRequest
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api/goals", tags=["goals"])


@router.get("/{goal_id}")
async def get_goal(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.get_goal(user_id, goal_id)


@router.patch("/{goal_id}")
async def update_goal(
    goal_id: str,
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.update_goal(user_id, goal_id, body)


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.delete_goal(user_id, goal_id)


@router.post("/{goal_id}/complete")
async def complete_goal(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.complete_goal(user_id, goal_id)


@router.post("/{goal_id}/pomodoro-complete")
async def complete_goal_pomodoro(
    goal_id: str,
    body: Optional[PomodoroRequest] = None,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    minutes = body.minutes if body is not None else None
    return await container.goals.complete_goal_pomodoro(user_id, goal_id, minutes)


# Milestones


@router.get("/{goal_id}/milestones")
async def list_milestones(
    goal_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[Dict[str, Any]]:
    return await container.goals.list_milestones(user_id, goal_id)


@router.post("/{goal_id}/milestones", status_code=201)
async def add_milestone(
    goal_id: str,
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.add_milestone(user_id, goal_id, body)


@router.patch("/{goal_id}/milestones/{milestone_id}")
async def update_milestone(
    goal_id: str,
    milestone_id: str,
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.update_milestone(user_id, goal_id, milestone_id, body)


@router.delete("/{goal_id}/milestones/{milestone_id}")
async def delete_milestone(
    goal_id: str,
    milestone_id: str,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.goals.delete_milestone(user_id, goal_id, milestone_id)
