"""Liveness and dependency health."""

from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends

from src.api.dependencies import get_container
from src.api.schemas import HealthResponse
from src.core.cache.service import CacheService
from src.core.config.config import Config
from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logging_health
from src.core.redis.service import RedisService
from src.core.services.container import ServiceContainer

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    """
    Always answers 200; `status` is "degraded" when a configured
    dependency is down. Unconfigured dependencies report null.
    """
    warnings: List[str] = []

    database: Optional[bool] = None
    if container.stores.persistent_store is not None:
        database = await DatabaseService.health_check()
        if not database:
            warnings.append("database unreachable")

    redis: Optional[bool] = None
    if RedisService.is_enabled():
        redis = await RedisService.health_check()
        if not redis:
            warnings.append("redis unreachable, serving uncached reads")

    services = await container.health_check()
    services["cache"] = CacheService.get_stats()
    services["logging"] = asdict(get_logging_health())

    return HealthResponse(
        status="degraded" if warnings else "ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=Config.ENVIRONMENT,
        database=database,
        redis=redis,
        ai=container.ai.enabled,
        services=services,
        warnings=warnings,
    )
