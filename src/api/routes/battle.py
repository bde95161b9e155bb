"""Pomodoro session history and daily battle reports."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from src.api.dependencies import get_container, get_user_id
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api", tags=["battle"])


@router.get("/battle-reports/daily")
async def daily_report(
    date: Optional[str] = Query(default=None),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.battles.get_daily_report(user_id, date)


@router.get("/battle-reports/summary")
async def report_summary(
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.battles.get_summary(user_id, start_date, end_date)


@router.get("/pomodoro-sessions")
async def list_sessions(
    limit: int = Query(default=50),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> List[Dict[str, Any]]:
    return await container.battles.list_sessions(user_id, limit)


@router.post("/pomodoro-sessions", status_code=201)
async def log_session(
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    return await container.battles.log_session(user_id, body)
