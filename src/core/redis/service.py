"""
Redis client lifecycle and primitive operations.

Purpose
-------
Own the process-wide `redis.asyncio` client used by the read cache.
Redis is optional: when `REDIS_URL` is unset the service stays disabled and
every caller falls back to the database.

Design Notes
------------
- Class-level singleton, initialized once at startup like DatabaseService.
- `decode_responses=True`; values are JSON strings.
- Operations raise on Redis errors; `CacheService` decides how to degrade.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Optional

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from src.core.config.config import Config
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class RedisService:
    """Singleton async Redis client."""

    _client: Optional[AsyncRedis] = None
    _is_healthy: bool = False
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> bool:
        """
        Connect and PING.

        Returns:
            True when Redis is connected, False when it is not configured
            or unreachable (the app keeps running without a cache)
        """
        url = url or Config.REDIS_URL
        if not url:
            logger.info("REDIS_URL not configured; cache disabled")
            return False

        async with cls._init_lock:
            if cls._client is not None:
                return True

            start_time = time.monotonic()
            client: AsyncRedis = AsyncRedis.from_url(
                url,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                encoding="utf-8",
                decode_responses=True,
                retry_on_timeout=False,
                health_check_interval=30,
            )

            try:
                await client.ping()  # type: ignore[misc]
            except (RedisConnectionError, RedisError, OSError) as exc:
                await client.aclose()
                cls._is_healthy = False
                logger.warning(
                    "Redis unreachable; continuing without cache",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                    },
                )
                return False

            cls._client = client
            cls._is_healthy = True
            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": url.split("://")[0] if "://" in url else "unknown",
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            return True

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call when not initialized."""
        client = cls._client
        cls._client = None
        cls._is_healthy = False

        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except RedisError as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def is_enabled(cls) -> bool:
        return cls._client is not None

    @classmethod
    def is_healthy(cls) -> bool:
        """Return cached health status without performing I/O."""
        return cls._client is not None and cls._is_healthy

    @classmethod
    async def health_check(cls) -> bool:
        """PING; never raises."""
        if cls._client is None:
            return False

        try:
            cls._is_healthy = bool(await cls._client.ping())  # type: ignore[misc]
        except (RedisConnectionError, RedisError, OSError) as exc:
            cls._is_healthy = False
            logger.warning(
                "Redis health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
        return cls._is_healthy

    @classmethod
    def client(cls) -> AsyncRedis:
        if cls._client is None:
            raise RuntimeError("RedisService is not initialized")
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def get_json(cls, key: str) -> Optional[Any]:
        raw = await cls.client().get(key)
        if raw is None:
            return None
        return json.loads(raw)

    @classmethod
    async def set_json(cls, key: str, value: Any, ttl_seconds: int) -> bool:
        payload = json.dumps(value, default=str, ensure_ascii=False)
        return bool(await cls.client().set(key, payload, ex=ttl_seconds))

    @classmethod
    async def delete(cls, *keys: str) -> int:
        if not keys:
            return 0
        return int(await cls.client().delete(*keys))

    @classmethod
    async def delete_pattern(cls, pattern: str) -> int:
        """Delete every key matching a glob pattern using SCAN."""
        keys = [key async for key in cls.client().scan_iter(match=pattern, count=100)]
        return await cls.delete(*keys)
