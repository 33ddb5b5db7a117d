"""
Startup and shutdown of the leaderboard.

`ApplicationContext.initialize()` brings the pieces up in dependency order:

1. ConfigManager loads YAML defaults and the ``leaderboard.*`` validators
   are registered.
2. RedisService connects (PING) and creates the shared resilience layer.
3. A RedisRankStore is bound to ``leaderboard.collection`` (falling back to
   LEADERBOARD_COLLECTION from the environment).
4. LeaderboardService is built on that store.

`shutdown()` closes the Redis pool. Any failure during startup closes what
was opened and is re-raised as RuntimeError.

    async with ApplicationContext() as context:
        await context.leaderboard.update_score(10, "alice")
"""

from __future__ import annotations

import time
from typing import Optional

from zrank.core.config import Config, ConfigManager
from zrank.core.exceptions import ConfigurationError
from zrank.core.logging.logger import get_logger
from zrank.core.redis.service import RedisService
from zrank.modules.leaderboard.service import LeaderboardService, register_config_validators
from zrank.modules.leaderboard.store import RedisRankStore

logger = get_logger(__name__)


class ApplicationContext:
    def __init__(self, redis_url: Optional[str] = None) -> None:
        self._redis_url = redis_url
        self._store: Optional[RedisRankStore] = None
        self._leaderboard: Optional[LeaderboardService] = None

    async def initialize(self) -> None:
        if self._leaderboard is not None:
            raise RuntimeError("ApplicationContext is already running")

        started = time.perf_counter()
        try:
            await ConfigManager.initialize()
            register_config_validators(ConfigManager)
            logger.debug("Static configuration", extra={"config": Config.get_config_summary()})

            await RedisService.initialize(self._redis_url)

            collection = ConfigManager.get("leaderboard.collection", Config.LEADERBOARD_COLLECTION)
            if not isinstance(collection, str) or not collection.strip():
                raise ConfigurationError(
                    "leaderboard.collection", f"expected a non-empty string, got {collection!r}"
                )

            store = RedisRankStore(
                RedisService.client(),
                collection=collection,
                resilience=RedisService.get_resilience(),
            )
            leaderboard = LeaderboardService(store=store, config_manager=ConfigManager)
        except Exception as exc:
            logger.critical(
                "Leaderboard startup failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            await RedisService.shutdown()
            raise RuntimeError(f"Leaderboard startup failed: {exc}") from exc

        self._store, self._leaderboard = store, leaderboard
        logger.info(
            "Leaderboard ready",
            extra={
                "collection": collection,
                "tie_break": leaderboard.codec.tie_break.value,
                "environment": Config.ENVIRONMENT,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )

    async def shutdown(self) -> None:
        """Close the Redis pool; a no-op when not running."""
        if self._leaderboard is None:
            return
        self._store = self._leaderboard = None
        await RedisService.shutdown()
        logger.info("Leaderboard stopped")

    async def __aenter__(self) -> "ApplicationContext":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    @property
    def leaderboard(self) -> LeaderboardService:
        if self._leaderboard is None:
            raise RuntimeError("ApplicationContext is not running")
        return self._leaderboard

    @property
    def store(self) -> RedisRankStore:
        if self._store is None:
            raise RuntimeError("ApplicationContext is not running")
        return self._store

    @property
    def is_initialized(self) -> bool:
        return self._leaderboard is not None
