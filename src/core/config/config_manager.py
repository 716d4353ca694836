"""
YAML-backed tunables with dot-notation access.

Features:
- Hierarchical access with dot notation (e.g. 'validation.cache_ttl_seconds')
- Built-in defaults deep-merged with every ``config/**/*.yaml`` file
- In-memory cache, reloadable at runtime
- Runtime overrides for operators and tests

Tunables served here:
- validation.*   cache TTL/size and bypass expiry for command validation
- cases.*        client case limits
- staff.roles    the staff hierarchy (name, level, max_count)
- jobs.*         default application questions, expiry, page size
- retainers.*    the agreement text clients sign
- reminders.*    per-user cap on active reminders
- server_setup   roles, categories, channels and default jobs for bootstrap
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from src.core.config.config import Config
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


_MISSING = object()


def _deep_merge(base: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class ConfigManager:
    """
    Class-level configuration registry.

    Built-in defaults are always present so services work before
    ``initialize()`` runs (unit tests, scripts). YAML values win over
    defaults; overrides win over both.
    """

    _defaults: Dict[str, Any] = {
        "validation": {
            "cache_ttl_seconds": 5,
            "cache_max_entries": 100,
            "cache_evict_batch": 20,
            "bypass_ttl_seconds": 300,
            "max_pending_bypasses": 500,
            "cross_entity_batch_size": 50,
            "cross_entity_cache_ttl_seconds": 300,
        },
        "cases": {
            "max_active_per_client": 5,
            "warning_threshold": 3,
            "workload_limits": {
                "Managing Partner": 20,
                "Senior Partner": 15,
                "Junior Partner": 12,
                "Senior Associate": 10,
                "Junior Associate": 8,
                "Paralegal": 5,
            },
            "default_workload_limit": 10,
        },
        "staff": {
            "page_size": 10,
            "roles": [
                {"name": "Managing Partner", "level": 6, "max_count": 1},
                {"name": "Senior Partner", "level": 5, "max_count": 3},
                {"name": "Junior Partner", "level": 4, "max_count": 5},
                {"name": "Senior Associate", "level": 3, "max_count": 10},
                {"name": "Junior Associate", "level": 2, "max_count": 10},
                {"name": "Paralegal", "level": 1, "max_count": 10},
            ],
        },
        "jobs": {
            "page_size": 5,
            "max_days_open": 30,
            "cleanup_interval_hours": 24,
            "default_questions": [],
        },
        "retainers": {
            "agreement_template": "",
        },
        "reminders": {
            "max_active_per_user": 10,
        },
    }
    _cache: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> Dict[str, Any]:
        """
        Recursively load every YAML file under ``config_dir``.

        A broken file is logged and skipped; the rest still load.
        """
        merged: Dict[str, Any] = {}
        if not config_dir.exists():
            logger.warning(f"{config_dir} not found, skipping YAML loading")
            return merged

        yaml_files = sorted(list(config_dir.rglob("*.yaml")) + list(config_dir.rglob("*.yml")))
        loaded_count = 0
        for yaml_file in yaml_files:
            try:
                with open(yaml_file, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning(
                    f"Failed to load YAML config {yaml_file.name}: {e}",
                    extra={"file": str(yaml_file), "error": str(e)},
                )
                continue

            if isinstance(data, dict):
                _deep_merge(merged, data)
                loaded_count += 1
                logger.debug(f"Loaded YAML config: {yaml_file.relative_to(config_dir)}")

        logger.info(
            f"Loaded {loaded_count} YAML config files",
            extra={"yaml_count": loaded_count, "config_dir": str(config_dir)},
        )
        return merged

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Build the cache from defaults plus YAML. Safe to call repeatedly."""
        cls._config_dir = Path(config_dir) if config_dir else Config.CONFIG_DIR
        cache = copy.deepcopy(cls._defaults)
        _deep_merge(cache, cls._load_yaml_configs(cls._config_dir))
        cls._cache = cache
        cls._initialized = True
        logger.info("ConfigManager initialized", extra={"top_level_keys": sorted(cls._cache)})

    @classmethod
    def reload(cls) -> None:
        cls.initialize(cls._config_dir)

    # =========================================================================
    # PUBLIC METHODS
    # =========================================================================

    @classmethod
    def _resolve(cls, source: Dict[str, Any], key: str) -> Any:
        value: Any = source
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a config value by dot-notation path.

        Example:
            >>> ConfigManager.get("validation.cache_ttl_seconds")
            5
            >>> ConfigManager.get("jobs.unknown", 7)
            7
        """
        if key in cls._overrides:
            return cls._overrides[key]

        if not cls._initialized:
            cls._cache = copy.deepcopy(cls._defaults)
            cls._initialized = True

        value = cls._resolve(cls._cache, key)
        if value is _MISSING or value is None:
            return default
        return value

    @classmethod
    def set_override(cls, key: str, value: Any) -> None:
        """Runtime override for a single dot-notation key."""
        cls._overrides[key] = value
        logger.info(f"Config override set: {key}", extra={"config_key": key})

    @classmethod
    def clear_overrides(cls) -> None:
        cls._overrides.clear()

    @classmethod
    def get_all_keys(cls) -> List[str]:
        return sorted(cls._cache.keys())
