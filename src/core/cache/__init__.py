"""
Cache subsystem.

Purpose
-------
Read-through caching of per-user API payloads on top of `RedisService`,
with config-driven TTLs and graceful degradation: when Redis is
unconfigured or unhealthy every read goes straight to the loader.

Usage Example
-------------
>>> from src.core.cache import CacheService
>>>
>>> tasks = await CacheService.get_or_load(user_id, "tasks", load_tasks)
>>> await CacheService.invalidate_user(user_id)
>>> CacheService.get_stats()["hit_rate"]
"""

from src.core.cache.service import CacheService

__all__ = [
    "CacheService",
]
