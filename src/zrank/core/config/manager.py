"""
ConfigManager: dot-notation access to leaderboard tunables.

Defaults come from every ``*.yaml`` / ``*.yml`` file in the config directory
(``$ZRANK_CONFIG_DIR``, else ``<project>/config``), deep-merged in sorted
path order. Runtime overrides written with `set()` sit on top of them and
survive `reload()`. Reads are served from the merged dict, so `get()` never
touches the disk after the first call.

`get()` returns the caller's default for missing keys and for explicit
``null`` values; a missing config directory is not an error.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from zrank.core.config.config import Config
from zrank.core.config.errors import ConfigInitializationError, ConfigWriteError

# zrank.core.logging imports this package, so get_logger is not available here.
logger = logging.getLogger(__name__)

_MISSING = object()


def _merge(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class ConfigManager:
    """Process-wide; services receive the class itself as their config source."""

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _merged: Dict[str, Any] = {}
    _validators: Dict[str, Callable[[Any], Any]] = {}
    _loaded_files: List[str] = []
    _config_dir: Optional[Path] = None
    _initialized: bool = False
    _lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    async def initialize(cls, config_dir: Optional[Path] = None, strict: bool = False) -> None:
        """
        Load YAML defaults once.

        Raises
        ------
        ConfigInitializationError
            If `strict` and a file cannot be read or parsed. Otherwise such
            files are skipped with a warning.
        """
        async with cls._lock:
            if not cls._initialized:
                cls._load(config_dir, strict)

    @classmethod
    async def reload(cls) -> None:
        """Re-read the YAML files; overrides are kept."""
        async with cls._lock:
            cls._load(cls._config_dir, strict=False)

    @classmethod
    def _load(cls, config_dir: Optional[Path], strict: bool) -> None:
        directory = Path(config_dir or os.getenv("ZRANK_CONFIG_DIR") or Config.PROJECT_ROOT / "config")
        defaults: Dict[str, Any] = {}
        loaded: List[str] = []

        paths = sorted([*directory.rglob("*.yaml"), *directory.rglob("*.yml")]) if directory.is_dir() else []
        if not paths:
            logger.warning("No YAML config found, using code defaults", extra={"config_dir": str(directory)})

        for path in paths:
            name = str(path.relative_to(directory))
            try:
                data = yaml.safe_load(path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as exc:
                if strict:
                    raise ConfigInitializationError(f"Cannot load config file {path}") from exc
                logger.warning("Skipping unreadable config file", extra={"file": name, "error": str(exc)})
                continue

            if isinstance(data, dict):
                _merge(defaults, data)
                loaded.append(name)
            elif data is not None:
                logger.warning("Skipping config file without a mapping at the top", extra={"file": name})

        cls._config_dir = directory
        cls._defaults = defaults
        cls._loaded_files = loaded
        cls._rebuild()
        cls._initialized = True
        logger.info("Configuration loaded", extra={"config_dir": str(directory), "files": loaded})

    @classmethod
    def _rebuild(cls) -> None:
        merged = copy.deepcopy(cls._defaults)
        _merge(merged, cls._overrides)
        cls._merged = merged

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        >>> ConfigManager.get("leaderboard.window.default", 10)
        10
        """
        if not cls._initialized:
            cls._load(None, strict=False)

        node: Any = cls._merged
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return default if node is None else node

    @classmethod
    def loaded_files(cls) -> List[str]:
        return list(cls._loaded_files)

    @classmethod
    def register_validator(cls, key: str, validator: Callable[[Any], Any]) -> None:
        """`validator(value)` returns the value to store or raises to reject it."""
        cls._validators[key] = validator

    @classmethod
    async def set(cls, key: str, value: Any, modified_by: str = "system") -> None:
        """
        Override `key` at runtime.

        Raises
        ------
        ConfigWriteError
            If the key is malformed or its validator rejects the value.
        """
        parts = key.split(".")
        if not all(parts):
            raise ConfigWriteError(f"Invalid config key {key!r}")

        validator = cls._validators.get(key)
        if validator is not None:
            try:
                value = validator(value)
            except Exception as exc:
                logger.warning("Config override rejected", extra={"config_key": key, "error": str(exc)})
                raise ConfigWriteError(f"Rejected value for {key}: {exc}") from exc

        async with cls._lock:
            if not cls._initialized:
                cls._load(None, strict=False)

            node = cls._overrides
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = node[part] = {}
                node = child
            node[parts[-1]] = value
            cls._rebuild()

        logger.info("Config override applied", extra={"config_key": key, "modified_by": modified_by})

    @classmethod
    def clear_cache(cls) -> None:
        """Forget defaults, overrides and validators (used between tests)."""
        cls._defaults = {}
        cls._overrides = {}
        cls._merged = {}
        cls._validators = {}
        cls._loaded_files = []
        cls._config_dir = None
        cls._initialized = False


__all__ = ["ConfigManager"]
