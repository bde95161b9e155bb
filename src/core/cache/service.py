"""
Read-through cache for per-user payloads.

Purpose
-------
Cache the `GET /api/data?type=...` payloads per user and type. Every write
path invalidates the user's keys (services publish events, the container
wires `invalidate_user` to them), so a cached read is at most one TTL stale
only when Redis dropped an invalidation.

Key Templates
-------------
- `levelup:v1:user:{user_id}:{data_type}`

Graceful Degradation
--------------------
When Redis is unconfigured or failing, `get_or_load` calls the loader
directly and invalidation is a no-op. Cache errors are logged at WARNING and
never reach the caller.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.exceptions import RedisError

from src.core.config.manager import ConfigManager
from src.core.logging.logger import get_logger
from src.core.redis.service import RedisService

logger = get_logger(__name__)


class CacheService:
    """Per-user read-through cache over RedisService."""

    USER_DATA_KEY = "levelup:v1:user:{user_id}:{data_type}"

    # TTL defaults (overridable via ConfigManager "cache.ttl_seconds.<type>")
    _TTL_DEFAULTS: Dict[str, int] = {
        "tasks": 30,
        "stats": 60,
        "skills": 300,
        "goals": 300,
        "activity": 60,
    }

    _hits: int = 0
    _misses: int = 0
    _errors: int = 0

    @classmethod
    def _key(cls, user_id: str, data_type: str) -> str:
        return cls.USER_DATA_KEY.format(user_id=user_id, data_type=data_type)

    @classmethod
    def get_ttl(cls, data_type: str) -> int:
        default = cls._TTL_DEFAULTS.get(data_type, 60)
        return ConfigManager.get_int(f"cache.ttl_seconds.{data_type}", default)

    @classmethod
    async def get_or_load(
        cls,
        user_id: str,
        data_type: str,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached payload or load, cache and return it.

        Args:
            user_id: Owner of the payload
            data_type: One of tasks, stats, skills, goals, activity
            loader: Coroutine factory producing a JSON-serializable payload
        """
        if not RedisService.is_healthy():
            return await loader()

        key = cls._key(user_id, data_type)
        start = time.perf_counter()

        try:
            cached = await RedisService.get_json(key)
        except (RedisError, OSError, ValueError) as exc:
            cls._record_error("get", key, exc)
            return await loader()

        if cached is not None:
            cls._hits += 1
            logger.debug(
                "Cache hit",
                extra={
                    "key": key,
                    "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            return cached

        cls._misses += 1
        value = await loader()

        try:
            await RedisService.set_json(key, value, ttl_seconds=cls.get_ttl(data_type))
        except (RedisError, OSError, TypeError) as exc:
            cls._record_error("set", key, exc)

        return value

    @classmethod
    async def invalidate_user(cls, user_id: str, data_type: Optional[str] = None) -> int:
        """Drop one or all cached payloads for a user; returns keys deleted."""
        if not RedisService.is_healthy():
            return 0

        try:
            if data_type is not None:
                deleted = await RedisService.delete(cls._key(user_id, data_type))
            else:
                deleted = await RedisService.delete_pattern(cls._key(user_id, "*"))
        except (RedisError, OSError) as exc:
            cls._record_error("invalidate", cls._key(user_id, data_type or "*"), exc)
            return 0

        logger.debug(
            "Invalidated user cache",
            extra={"user_id": user_id, "data_type": data_type or "*", "deleted": deleted},
        )
        return deleted

    @classmethod
    async def on_user_changed(cls, payload: Dict[str, Any]) -> None:
        """EventBus listener: invalidate everything cached for `payload['user_id']`."""
        user_id = payload.get("user_id")
        if user_id is not None:
            await cls.invalidate_user(str(user_id))

    @classmethod
    def _record_error(cls, operation: str, key: str, exc: Exception) -> None:
        cls._errors += 1
        logger.warning(
            "Cache operation failed; serving from database",
            extra={
                "operation": operation,
                "key": key,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    @classmethod
    def get_stats(cls) -> Dict[str, Any]:
        total = cls._hits + cls._misses
        return {
            "enabled": RedisService.is_enabled(),
            "healthy": RedisService.is_healthy(),
            "hits": cls._hits,
            "misses": cls._misses,
            "errors": cls._errors,
            "hit_rate": round(cls._hits / total * 100, 2) if total else 0.0,
        }

    @classmethod
    def reset_stats(cls) -> None:
        cls._hits = 0
        cls._misses = 0
        cls._errors = 0
