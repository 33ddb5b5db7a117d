"""
Redis connection, circuit breaker and command metrics.

>>> await RedisService.initialize()
>>> store = RedisRankStore(RedisService.client(), "leaderboard", RedisService.get_resilience())
"""

from zrank.core.redis.metrics import RedisMetrics
from zrank.core.redis.resilience import (
    CircuitBreakerOpenError,
    CircuitState,
    RedisResilience,
    ResiliencePolicy,
)
from zrank.core.redis.service import RedisService

__all__ = [
    "RedisService",
    "RedisResilience",
    "ResiliencePolicy",
    "CircuitState",
    "CircuitBreakerOpenError",
    "RedisMetrics",
]
