"""
Configuration subsystem.

- **config.py**: static configuration from environment variables (.env support)
- **manager.py**: game-balance tunables from YAML defaults with runtime overrides

Usage
-----
```python
from src.core.config import Config, ConfigManager

db_url = Config.DATABASE_URL
max_balls = ConfigManager.get("energy.max_balls", 18)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.manager import ConfigManager, ConfigManagerError, ConfigWriteError

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigManagerError",
    "ConfigWriteError",
]
