"""
ConfigManager: dot-notation access to tunable gameplay configuration.

Purpose
-------
- Provide hierarchical, dot-notation access to tunable values such as the
  anti-cheat completion threshold and leaderboard sizes.
- Back configuration with YAML files from the `config/` directory.
- Allow in-process overrides for tests and operational tweaks.

Responsibilities
----------------
- Load and deep-merge every YAML file under `Config.CONFIG_DIR`.
- Serve reads from an in-memory cache with hit/miss counters.
- Fall back to the caller's default when a key is missing.

Non-Responsibilities
--------------------
- Secrets and connection strings (those belong to `Config` / environment).
- Persisting overrides anywhere.

Key Design Decisions
--------------------
- YAML is the single source for defaults; `set()` layers overrides on top.
- Loading is lazy: the first `get()` triggers `initialize()` if nobody has.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

from dodgeboard.core.config.config import Config
from dodgeboard.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    YAML-backed tunable configuration with dot-notation reads.

    >>> ConfigManager.get("anticheat.minimum_completion_time", 180)
    180
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _cache: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    _gets: int = 0
    _misses: int = 0

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
                ConfigManager._deep_merge_dict(target[key], value)  # type: ignore[index]
            else:
                target[key] = copy.deepcopy(value)

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        cls._defaults = {}

        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(config_dir.rglob("*.yml"))
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={"file": str(yaml_file), "root_type": type(data).__name__},
                )

        logger.info(
            "YAML configs loaded",
            extra={"yaml_file_count": loaded_count, "config_dir": str(config_dir)},
        )

    @classmethod
    def _rebuild_cache(cls) -> None:
        merged: Dict[str, Any] = copy.deepcopy(cls._defaults)
        for key, value in cls._overrides.items():
            node = merged
            parts = key.split(".")
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = value
        cls._cache = merged

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Path] = None) -> None:
        """Load YAML defaults (idempotent unless a new directory is given)."""
        target = Path(config_dir) if config_dir is not None else Path(Config.CONFIG_DIR)
        if cls._initialized and target == cls._config_dir:
            return

        cls._config_dir = target
        cls._load_yaml_configs(target)
        cls._rebuild_cache()
        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop overrides and force a reload on next access."""
        cls._overrides = {}
        cls._cache = {}
        cls._defaults = {}
        cls._initialized = False
        cls._config_dir = None
        cls._gets = 0
        cls._misses = 0

    # =========================================================================
    # READ / WRITE
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Returns `default` when any segment of the path is missing.
        """
        if not cls._initialized:
            cls.initialize()

        cls._gets += 1
        value: Any = cls._cache
        for part in key.split("."):
            if not isinstance(value, dict):
                value = _MISSING
                break
            value = value.get(part, _MISSING)
            if value is _MISSING:
                break

        if value is _MISSING or value is None:
            cls._misses += 1
            return default
        return value

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Override a single dot-notation key in memory."""
        if not cls._initialized:
            cls.initialize()

        old_value = cls.get(key)
        cls._overrides[key] = value
        cls._rebuild_cache()

        logger.info(
            "Config override applied",
            extra={"config_key": key, "old_value": old_value, "new_value": value},
        )

    @classmethod
    def get_metrics(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._initialized,
            "gets": cls._gets,
            "misses": cls._misses,
            "override_count": len(cls._overrides),
            "top_level_keys": sorted(cls._cache.keys()),
        }
