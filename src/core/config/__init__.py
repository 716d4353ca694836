"""
Configuration subsystem.

- **config.py**: static configuration from environment variables (.env support)
- **config_manager.py**: YAML-backed tunables with dot-notation access
"""

from src.core.config.config import Config, Environment
from src.core.config.config_manager import ConfigManager

__all__ = ["Config", "ConfigManager", "Environment"]
