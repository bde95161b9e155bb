"""User stats and skill endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from src.api.dependencies import get_container, get_user_id
from src.api.schemas import SkillExpRequest
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api", tags=["stats"])


@router.post("/user-stats/restore-energy")
async def restore_energy(
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.stats.restore_energy(user_id)


@router.post("/skills/{skill_id}/add-exp")
async def add_skill_exp(
    skill_id: str,
    body: SkillExpRequest,
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.skills.add_skill_exp(user_id, skill_id, body.amount)
