"""
Circuit breaker and retry policy for Redis commands.

`RedisResilience.execute` is the single path every rank-store command takes
to the server. The breaker counts consecutive failures and, past the
threshold, rejects calls outright with `CircuitBreakerOpenError` until the
cool-down elapses; a HALF_OPEN circuit closes again after enough successes.

Retries cover connection errors and timeouts only. The configured budget
defaults to a single attempt. Callers whose command is not safe to resend
after a lost reply (the compare-and-upsert script) pass ``max_attempts=1``
so the budget never applies to them.

Configuration keys (``core.redis.resilience.*``)::

    circuit.failure_threshold      int    5
    circuit.success_threshold      int    2
    circuit.timeout_seconds        float  60
    retry.max_attempts             int    1
    retry.initial_delay_seconds    float  0.1
    retry.max_delay_seconds        float  2.0
    retry.backoff_multiplier       float  2.0
    retry.jitter                   bool   true
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from zrank.core.config import ConfigManager
from zrank.core.logging.logger import get_logger

logger = get_logger(__name__)

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


class CircuitState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreakerOpenError(Exception):
    """The circuit is open; the command was not sent."""


@dataclass(frozen=True)
class ResiliencePolicy:
    failure_threshold: int = 5
    success_threshold: int = 2
    open_seconds: float = 60.0
    max_attempts: int = 1
    initial_delay: float = 0.1
    max_delay: float = 2.0
    backoff: float = 2.0
    jitter: bool = True

    @classmethod
    def from_config(cls) -> "ResiliencePolicy":
        def number(key: str, default, cast):
            value = ConfigManager.get(f"core.redis.resilience.{key}", default)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return default
            return cast(value)

        jitter = ConfigManager.get("core.redis.resilience.retry.jitter", cls.jitter)
        return cls(
            failure_threshold=number("circuit.failure_threshold", cls.failure_threshold, int),
            success_threshold=number("circuit.success_threshold", cls.success_threshold, int),
            open_seconds=number("circuit.timeout_seconds", cls.open_seconds, float),
            max_attempts=max(1, number("retry.max_attempts", cls.max_attempts, int)),
            initial_delay=number("retry.initial_delay_seconds", cls.initial_delay, float),
            max_delay=number("retry.max_delay_seconds", cls.max_delay, float),
            backoff=number("retry.backoff_multiplier", cls.backoff, float),
            jitter=jitter if isinstance(jitter, bool) else cls.jitter,
        )

    def delay_before(self, attempt: int) -> float:
        """Sleep before `attempt` (2 for the first retry)."""
        delay = min(self.initial_delay * self.backoff ** (attempt - 2), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.9, 1.1)
        return max(0.0, delay)


class RedisResilience:
    """
    Breaker state plus retry budget, shared by every store on one client.

    >>> resilience = RedisResilience()
    >>> await resilience.execute(lambda: client.zscore("leaderboard", "alice"), "ZSCORE")
    """

    def __init__(self, policy: Optional[ResiliencePolicy] = None) -> None:
        self.policy = policy or ResiliencePolicy.from_config()
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

        logger.debug("Redis resilience policy loaded", extra={"policy": vars(self.policy)})

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        max_attempts: Optional[int] = None,
    ) -> Any:
        """
        Await `operation()` under the breaker, retrying transient failures.

        Raises `CircuitBreakerOpenError` without calling `operation` when the
        circuit is open, otherwise re-raises the last error.
        """
        if not await self._allow():
            raise CircuitBreakerOpenError(f"circuit open, {operation_name} rejected")

        attempts = max(1, max_attempts if max_attempts is not None else self.policy.max_attempts)
        attempt = 1
        while True:
            try:
                result = await operation()
            except TRANSIENT_ERRORS as exc:
                await self._on_failure()
                if attempt >= attempts:
                    raise
                attempt += 1
                delay = self.policy.delay_before(attempt)
                logger.warning(
                    "Retrying Redis command",
                    extra={
                        "command": operation_name,
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "delay_seconds": round(delay, 3),
                        "error_type": type(exc).__name__,
                    },
                )
                await asyncio.sleep(delay)
            except Exception:
                await self._on_failure()
                raise
            else:
                await self._on_success()
                return result

    async def _allow(self) -> bool:
        async with self._lock:
            if self._state is not CircuitState.OPEN:
                return True
            elapsed = time.monotonic() - (self._opened_at or 0.0)
            if elapsed < self.policy.open_seconds:
                return False
            self._move_to(CircuitState.HALF_OPEN)
            return True

    async def _on_success(self) -> None:
        async with self._lock:
            self._failures = 0
            self._successes += 1
            if self._state is CircuitState.HALF_OPEN and self._successes >= self.policy.success_threshold:
                self._move_to(CircuitState.CLOSED)

    async def _on_failure(self) -> None:
        async with self._lock:
            self._successes = 0
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or (
                self._state is CircuitState.CLOSED
                and self._failures >= self.policy.failure_threshold
            ):
                self._move_to(CircuitState.OPEN)

    def _move_to(self, state: CircuitState) -> None:
        previous, self._state = self._state, state
        self._successes = 0
        if state is CircuitState.OPEN:
            self._opened_at = time.monotonic()
        else:
            self._failures = 0
            if state is CircuitState.CLOSED:
                self._opened_at = None

        log = logger.warning if state is CircuitState.OPEN else logger.info
        log(
            "Redis circuit state changed",
            extra={"previous_state": previous.value, "circuit_state": state.value},
        )

    async def reset(self) -> None:
        async with self._lock:
            self._move_to(CircuitState.CLOSED)

    async def force_open(self) -> None:
        async with self._lock:
            self._move_to(CircuitState.OPEN)

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state is CircuitState.OPEN

    @property
    def retry_max_attempts(self) -> int:
        return self.policy.max_attempts

    def get_status(self) -> Dict[str, Any]:
        return {
            "circuit_state": self._state.value,
            "failure_count": self._failures,
            "opened_at": self._opened_at,
            "retry_max_attempts": self.policy.max_attempts,
        }


__all__ = ["RedisResilience", "ResiliencePolicy", "CircuitState", "CircuitBreakerOpenError"]
