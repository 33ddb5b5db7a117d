"""
Common base for leaderboard-side services.

A service gets its configuration source and logger injected and never owns a
connection; stores are passed to the subclass constructor.
"""

from __future__ import annotations

from logging import Logger
from typing import Any


class BaseService:
    def __init__(self, config_manager: Any, logger: Logger) -> None:
        self._config = config_manager
        self.log = logger

    def get_config_int(self, key: str, default: int, min_val: int = 0) -> int:
        """`key` as an int >= `min_val`; anything else logs a warning and yields `default`."""
        value = self._config.get(key, default)
        if isinstance(value, int) and not isinstance(value, bool) and value >= min_val:
            return value
        self.log.warning(
            "Ignoring invalid integer setting",
            extra={"config_key": key, "value": value, "default": default},
        )
        return default

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        self.log.error(
            f"{operation} failed: {error}",
            extra={"operation": operation, "error_type": type(error).__name__, **context},
        )
