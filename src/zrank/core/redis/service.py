"""
Process-wide Redis connection.

`RedisService.initialize()` builds one pooled ``redis.asyncio`` client, PINGs
it, and creates the `RedisResilience` instance every rank store on that
client shares. It is idempotent; `shutdown()` closes the pool and may be
called when nothing was initialized.

URL, password, pool size and socket timeout come from `Config`
(environment). ``core.redis.health_check_interval`` (seconds, default 30)
comes from ConfigManager. Redis-py's own retry-on-timeout is disabled so the
resilience layer alone decides what gets resent.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import RedisError

from zrank.core.config import ConfigManager
from zrank.core.config.config import Config
from zrank.core.logging.logger import get_logger
from zrank.core.redis.metrics import RedisMetrics
from zrank.core.redis.resilience import RedisResilience

logger = get_logger(__name__)


def _scheme(url: str) -> str:
    return url.partition("://")[0] if "://" in url else "unknown"


class RedisService:
    _client: Optional[AsyncRedis] = None
    _resilience: Optional[RedisResilience] = None
    _healthy: bool = False
    _lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Connect to `url` (default: Config.REDIS_URL).

        Raises
        ------
        RuntimeError
            If the server does not answer PING.
        """
        async with cls._lock:
            if cls._client is not None:
                return

            url = url or Config.REDIS_URL
            started = time.perf_counter()
            client = AsyncRedis.from_url(
                url,
                password=Config.REDIS_PASSWORD,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                decode_responses=True,
                retry_on_timeout=False,
                health_check_interval=ConfigManager.get("core.redis.health_check_interval", 30),
            )

            try:
                await client.ping()
            except (RedisError, OSError) as exc:
                await client.aclose()
                logger.critical(
                    "Redis unreachable",
                    extra={"url_scheme": _scheme(url), "error": str(exc), "error_type": type(exc).__name__},
                )
                raise RuntimeError(f"Cannot connect to Redis: {exc}") from exc

            cls._client = client
            cls._resilience = RedisResilience()
            cls._healthy = True
            logger.info(
                "Redis connected",
                extra={
                    "url_scheme": _scheme(url),
                    "max_connections": Config.REDIS_MAX_CONNECTIONS,
                    "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        async with cls._lock:
            client, cls._client = cls._client, None
            cls._resilience = None
            cls._healthy = False
            if client is None:
                return

            try:
                await client.aclose()
            except (RedisError, OSError) as exc:
                logger.error("Error closing Redis client", extra={"error": str(exc)})
            else:
                logger.info("Redis connection closed")

    @classmethod
    async def health_check(cls) -> bool:
        """PING the server and cache the answer in `is_healthy()`."""
        if cls._client is None:
            cls._healthy = False
            return False

        try:
            cls._healthy = bool(await cls._client.ping())
        except (RedisError, OSError) as exc:
            logger.error("Redis health check failed", extra={"error": str(exc), "error_type": type(exc).__name__})
            cls._healthy = False
        return cls._healthy

    @classmethod
    def is_healthy(cls) -> bool:
        return cls._healthy

    @classmethod
    def get_status(cls) -> Dict[str, Any]:
        return {
            "initialized": cls._client is not None,
            "healthy": cls._healthy,
            "resilience": cls._resilience.get_status() if cls._resilience else None,
            "metrics": RedisMetrics.get_summary(),
        }

    @classmethod
    def client(cls) -> AsyncRedis:
        if cls._client is None:
            raise RuntimeError("RedisService is not initialized; await RedisService.initialize() first")
        return cls._client

    @classmethod
    def get_resilience(cls) -> RedisResilience:
        if cls._resilience is None:
            raise RuntimeError("RedisService is not initialized; await RedisService.initialize() first")
        return cls._resilience


__all__ = ["RedisService"]
