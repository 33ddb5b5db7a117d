"""
Core infrastructure layer for zrank.

Provides one import surface for the infrastructure subsystems:

- Configuration management (Config, ConfigManager)
- Redis subsystem (RedisService, RedisResilience, RedisMetrics)
- Logging (structured logging, logger factory, LogContext)
- Infrastructure exceptions (ZRankInfrastructureException hierarchy)

The application context lives in `zrank.core.infra` and is imported from
there, since it depends on the leaderboard module.
"""

from zrank.core.config import Config, ConfigManager
from zrank.core.exceptions import (
    ConfigurationError,
    ErrorSeverity,
    StoreError,
    StoreUnavailableError,
    ZRankInfrastructureException,
)
from zrank.core.logging.logger import LogContext, get_logger
from zrank.core.redis import RedisMetrics, RedisResilience, RedisService

__all__ = [
    "Config",
    "ConfigManager",
    "ErrorSeverity",
    "ZRankInfrastructureException",
    "ConfigurationError",
    "StoreError",
    "StoreUnavailableError",
    "LogContext",
    "get_logger",
    "RedisService",
    "RedisResilience",
    "RedisMetrics",
]
