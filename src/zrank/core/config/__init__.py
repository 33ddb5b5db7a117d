"""
Configuration management subsystem for zrank.

Static vs Dynamic Configuration
--------------------------------
**Static (Config):**
- Loaded from environment variables at import (.env supported)
- Redis URL, pool size, environment, logging switches

**Dynamic (ConfigManager):**
- Loaded from YAML defaults in the config directory
- Leaderboard tunables: collection name, tie-break policy, window sizes,
  compare-and-swap attempts, Redis resilience thresholds
- Runtime overrides via `await ConfigManager.set(...)`

Usage
-----
```python
from zrank.core.config import Config, ConfigManager

url = Config.REDIS_URL
await ConfigManager.initialize()
window = ConfigManager.get("leaderboard.window.default", 10)
```
"""

from zrank.core.config.config import Config, Environment
from zrank.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigWriteError,
)
from zrank.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigWriteError",
]
