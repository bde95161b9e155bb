"""
Redis infrastructure.

Purpose
-------
Connection lifecycle and JSON key/value helpers over `redis.asyncio`.
Redis is optional: without `REDIS_URL` the service stays disabled and
callers fall back to the database.

Example Usage
-------------
>>> await RedisService.initialize()
>>> await RedisService.set_json("key", {"a": 1}, ttl_seconds=60)
>>> await RedisService.get_json("key")
>>> await RedisService.shutdown()
"""

from __future__ import annotations

from src.core.redis.service import RedisService

__all__ = [
    "RedisService",
]
