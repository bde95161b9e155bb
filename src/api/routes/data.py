"""
Read endpoint for the client's resource lists.

Payloads are served through the per-user read-through cache; writes
invalidate it via EventBus listeners.
"""

from typing import Any, Awaitable, Callable, Dict, Literal

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_container, get_user_id
from src.core.cache.service import CacheService
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api/data", tags=["data"])

DataType = Literal["tasks", "stats", "skills", "goals", "activity"]


def _loader(container: ServiceContainer, data_type: str, user_id: str) -> Callable[[], Awaitable[Any]]:
    loaders: Dict[str, Callable[[], Awaitable[Any]]] = {
        "tasks": lambda: container.tasks.list_tasks(user_id),
        "stats": lambda: container.stats.get_stats(user_id),
        "skills": lambda: container.skills.list_skills(user_id),
        "goals": lambda: container.goals.list_goals(user_id),
        "activity": lambda: container.activity.list_activity(user_id),
    }
    return loaders[data_type]


@router.get("")
async def read_data(
    data_type: DataType = Query(..., alias="type"),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Any:
    return await CacheService.get_or_load(user_id, data_type, _loader(container, data_type, user_id))
