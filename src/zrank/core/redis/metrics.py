"""
Per-command counters for the Redis rank store.

Kept at class level so every store in the process reports into one place;
`RedisService.get_status()` includes the summary. Commands slower than
``core.redis.metrics.slow_operation_ms`` (default 100) are logged.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict

from zrank.core.config import ConfigManager
from zrank.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CommandStats:
    success_count: int = 0
    failure_count: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    def to_dict(self) -> Dict[str, Any]:
        calls = self.total_count
        return {
            "total_count": calls,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "avg_latency_ms": round(self.total_latency_ms / calls, 2) if calls else 0.0,
            "max_latency_ms": round(self.max_latency_ms, 2),
        }


class RedisMetrics:
    _commands: Dict[str, CommandStats] = defaultdict(CommandStats)
    _lock = Lock()
    _since: float = time.time()

    @classmethod
    def record_operation(cls, command: str, latency_ms: float, success: bool = True) -> None:
        with cls._lock:
            stats = cls._commands[command]
            if success:
                stats.success_count += 1
            else:
                stats.failure_count += 1
            stats.total_latency_ms += latency_ms
            stats.max_latency_ms = max(stats.max_latency_ms, latency_ms)

        threshold = ConfigManager.get("core.redis.metrics.slow_operation_ms", 100)
        if latency_ms > threshold:
            logger.warning(
                "Slow Redis command",
                extra={"command": command, "latency_ms": round(latency_ms, 2), "threshold_ms": threshold},
            )

    @classmethod
    def get_operation_metrics(cls, command: str) -> Dict[str, Any]:
        with cls._lock:
            stats = cls._commands.get(command)
            return stats.to_dict() if stats else {}

    @classmethod
    def get_summary(cls) -> Dict[str, Any]:
        with cls._lock:
            return {
                "since": cls._since,
                "operations": {name: stats.to_dict() for name, stats in cls._commands.items()},
            }

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._commands.clear()
            cls._since = time.time()


__all__ = ["RedisMetrics", "CommandStats"]
