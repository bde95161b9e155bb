"""
Core infrastructure layer for Level Up Solo.

Subpackages
-----------
- config: environment configuration (Config) and balance tunables (ConfigManager)
- database: async engine, sessions, ORM base
- cache: Redis read-through cache with graceful degradation
- event: in-process async EventBus
- logging: structured logging and request context
- services: service container wiring

This module is intentionally thin: import from the subpackages directly.
"""
