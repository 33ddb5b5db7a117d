"""
Static settings read from the environment (and a `.env` file, if present).

These are the values needed before anything else starts: where Redis is,
which sorted set holds the leaderboard by default, and how to log. Tunable
leaderboard behaviour lives in ConfigManager instead.

Malformed or out-of-range values fall back to the default with a warning;
startup never fails on a bad environment variable.

Variables (default)
-------------------
REDIS_URL (redis://localhost:6379/0), REDIS_PASSWORD (unset),
REDIS_MAX_CONNECTIONS (50, 1..500), REDIS_SOCKET_TIMEOUT (5, 1..60),
LEADERBOARD_COLLECTION (leaderboard), ENVIRONMENT (development),
LOG_LEVEL (INFO), LOG_JSON (JSON in production only), LOG_COLORS (true),
LOG_FILE_ENABLED (true), LOGS_DIR (<project>/logs)
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

# Runs before logging is configured, so warnings go to the stdlib root logger.
_bootstrap_log = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """Unknown names fall back to DEVELOPMENT."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            _bootstrap_log.warning("Unknown ENVIRONMENT %r, using development", value)
            return cls.DEVELOPMENT


def _env_int(key: str, default: int, low: int, high: int) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = None
    if value is None or not low <= value <= high:
        _bootstrap_log.warning("%s=%r is not an integer in [%d, %d], using %d", key, raw, low, high, default)
        return default
    return value


def _env_bool(key: str) -> Optional[bool]:
    raw = os.getenv(key)
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    _bootstrap_log.warning("%s=%r is not a boolean, ignoring it", key, raw)
    return None


def _env_str(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


class Config:
    """Class-level settings; `load()` runs on import and again in tests."""

    PROJECT_ROOT = Path(__file__).resolve().parents[4]

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PASSWORD: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: int = 5

    LEADERBOARD_COLLECTION: str = "leaderboard"

    ENVIRONMENT: str = Environment.DEVELOPMENT.value
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_FILE_ENABLED: bool = True
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    @classmethod
    def load(cls) -> None:
        cls.REDIS_URL = _env_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_PASSWORD = os.getenv("REDIS_PASSWORD") or None
        cls.REDIS_MAX_CONNECTIONS = _env_int("REDIS_MAX_CONNECTIONS", 50, 1, 500)
        cls.REDIS_SOCKET_TIMEOUT = _env_int("REDIS_SOCKET_TIMEOUT", 5, 1, 60)

        cls.LEADERBOARD_COLLECTION = _env_str("LEADERBOARD_COLLECTION", "leaderboard")

        cls.ENVIRONMENT = Environment.from_string(_env_str("ENVIRONMENT", "development")).value

        level = _env_str("LOG_LEVEL", "INFO").upper()
        if level not in _LOG_LEVELS:
            _bootstrap_log.warning("LOG_LEVEL=%r is not a level name, using INFO", level)
            level = "INFO"
        cls.LOG_LEVEL = level
        cls.LOG_JSON = _env_bool("LOG_JSON")
        cls.LOG_COLORS = _env_bool("LOG_COLORS") is not False
        cls.LOG_FILE_ENABLED = _env_bool("LOG_FILE_ENABLED") is not False
        cls.LOGS_DIR = Path(_env_str("LOGS_DIR", str(cls.PROJECT_ROOT / "logs")))

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT == Environment.PRODUCTION.value

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT == Environment.TESTING.value

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Settings that are safe to log (no password)."""
        return {
            "environment": cls.ENVIRONMENT,
            "log_level": cls.LOG_LEVEL,
            "redis_url_scheme": cls.REDIS_URL.partition("://")[0],
            "redis_password_set": cls.REDIS_PASSWORD is not None,
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "redis_socket_timeout": cls.REDIS_SOCKET_TIMEOUT,
            "leaderboard_collection": cls.LEADERBOARD_COLLECTION,
        }


Config.load()
