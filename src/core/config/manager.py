"""
ConfigManager: dot-notation access to tunable game-balance values.

Purpose
-------
- Provide hierarchical, dot-notation access to progression tunables
  (energy cap, leveling curve, reward tables, skill ratios).
- Back configuration with YAML defaults from the `config/` directory,
  layered over built-in defaults so the service boots without any files.
- Allow runtime overrides (admin tooling, tests) with an optional
  `config.changed` event on the EventBus.

Key Design Decisions
--------------------
- Built-in defaults < YAML files < runtime overrides.
- All state is class-level; `ConfigManager()` instances share it, so the
  service container can pass an instance while modules call classmethods.
- Reads never raise; missing keys resolve to the supplied default.

Dependencies
------------
- PyYAML for the `config/*.yaml` defaults
- `src.core.logging.logger.get_logger`
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, MutableMapping, Optional

import yaml

from src.core.config.config import Config
from src.core.logging.logger import get_logger

if TYPE_CHECKING:
    from src.core.event.bus import EventBus

logger = get_logger(__name__)


class ConfigManagerError(RuntimeError):
    """Base error type for ConfigManager-related failures."""


class ConfigWriteError(ConfigManagerError):
    """Raised when a configuration override is rejected."""


__all__ = ["ConfigManager", "ConfigManagerError", "ConfigWriteError", "BUILTIN_DEFAULTS"]


# Mirrors config/progression.yaml so a missing file never changes behavior.
BUILTIN_DEFAULTS: Dict[str, Any] = {
    "leveling": {
        "base": 100,
        "growth": 1.15,
    },
    "energy": {
        "max_balls": 18,
        "minutes_per_ball": 15,
    },
    "rewards": {
        "standard": {"trivial": 1, "easy": 2, "medium": 3, "hard": 4},
        "ai_creation": {"trivial": 10, "easy": 10, "medium": 20, "hard": 35},
        "difficulty_energy": {"trivial": 1, "easy": 1, "medium": 2, "hard": 4},
    },
    "habits": {
        "value_step": 0.25,
        "value_cap": 3.0,
        "streak_bonus_every": 7,
        "streak_bonus_exp": 5,
        "skill_exp_ratio": 0.8,
    },
    "goals": {
        "exp_reward": 50,
        "pomodoro_exp_reward": 10,
        "required_energy_balls": 4,
        "pomodoro_skill_ratio": 0.5,
    },
    "tasks": {
        "default_duration_minutes": 25,
        "default_exp_reward": 20,
    },
    "pomodoro": {
        "work_minutes": 25,
        "rest_minutes": 5,
    },
    "cache": {
        "ttl_seconds": {"tasks": 30, "stats": 60, "skills": 300, "goals": 300, "activity": 60},
    },
}


class ConfigManager:
    """
    Game-balance configuration with YAML defaults and runtime overrides.

    Examples
    --------
    >>> ConfigManager.get("energy.max_balls")
    18
    >>> ConfigManager.get("rewards.ai_creation.hard")
    35
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _event_bus: Optional["EventBus"] = None

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> int:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return 0

        loaded = 0
        for yaml_file in sorted(config_dir.rglob("*.y*ml")):
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={"file": str(yaml_file), "error": str(exc)},
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded += 1
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )
        return loaded

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(
        cls,
        config_dir: Optional[Path] = None,
        event_bus: Optional["EventBus"] = None,
    ) -> None:
        """Load defaults and YAML files, then rebuild the cache (idempotent)."""
        if cls._initialized and config_dir is None:
            return

        cls._defaults = copy.deepcopy(BUILTIN_DEFAULTS)
        loaded = cls._load_yaml_configs(config_dir or Config.CONFIG_DIR)
        cls._event_bus = event_bus or cls._event_bus
        cls._rebuild_cache()
        cls._initialized = True

        logger.info(
            "ConfigManager initialized",
            extra={"yaml_file_count": loaded, "top_level_keys": len(cls._cache)},
        )

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and reload from defaults; used by tests."""
        cls._overrides = {}
        cls._initialized = False
        cls._defaults = {}
        cls._cache = {}

    @classmethod
    def _rebuild_cache(cls) -> None:
        merged = copy.deepcopy(cls._defaults)
        for key, value in cls._overrides.items():
            cls._assign(merged, key, value)
        cls._cache = merged

    @staticmethod
    def _assign(target: Dict[str, Any], key: str, value: Any) -> None:
        parts = key.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    # =========================================================================
    # READS
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Lazily bootstraps from defaults when accessed before `initialize()`.
        """
        if not cls._initialized:
            cls.initialize()

        value: Any = cls._cache
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return default if value is None else value

    @classmethod
    def get_int(cls, key: str, default: int = 0) -> int:
        try:
            return int(cls.get(key, default))
        except (TypeError, ValueError):
            logger.warning("Non-integer config value", extra={"config_key": key})
            return default

    @classmethod
    def get_float(cls, key: str, default: float = 0.0) -> float:
        try:
            return float(cls.get(key, default))
        except (TypeError, ValueError):
            logger.warning("Non-numeric config value", extra={"config_key": key})
            return default

    # =========================================================================
    # WRITES
    # =========================================================================

    @classmethod
    async def set(cls, key: str, value: Any, modified_by: str = "system") -> None:
        """
        Apply a runtime override and publish `config.changed`.

        Raises
        ------
        ConfigWriteError
            If the override would replace a section with a scalar.
        """
        if not key or not key.strip():
            raise ConfigWriteError("Config key cannot be empty")

        current = cls.get(key)
        if isinstance(current, dict) and not isinstance(value, dict):
            raise ConfigWriteError(f"Cannot replace config section '{key}' with a scalar")

        cls._overrides[key] = value
        cls._rebuild_cache()

        logger.info(
            "Config override applied",
            extra={"config_key": key, "modified_by": modified_by},
        )

        if cls._event_bus is not None:
            await cls._event_bus.publish(
                "config.changed",
                {"key": key, "old_value": current, "new_value": value, "modified_by": modified_by},
            )
