"""
Configuration management subsystem.

- **config.py**: static configuration from environment variables (.env)
- **manager.py**: YAML-backed tunables with dot-notation access

`ConfigManager` is imported from `dodgeboard.core.config.manager` directly;
it depends on the logging subsystem, which itself reads `Config`.

Usage
-----
```python
from dodgeboard.core.config import Config
from dodgeboard.core.config.manager import ConfigManager

db_url = Config.DATABASE_URL
threshold = ConfigManager.get("anticheat.minimum_completion_time", 180)
```
"""

from dodgeboard.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
