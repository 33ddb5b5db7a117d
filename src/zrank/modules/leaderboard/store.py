"""
Rank store adapters.

Purpose
-------
Narrow the sorted-set store down to the operations the leaderboard needs,
scoped to one named collection:

- get_score                  (ZSCORE)
- upsert                     (ZADD)
- reverse_rank               (ZREVRANK)
- reverse_range_with_scores  (ZREVRANGE ... WITHSCORES)
- compare_and_upsert         (Lua: ZSCORE + ZADD, atomic on the server)
- count                      (ZCARD)

A missing member is reported as ``None``, never as an error. Store failures
are translated into `StoreUnavailableError` (connectivity, timeouts, open
circuit) or `StoreError` (everything else), carrying the operation,
collection and member.

Ordering
--------
Members are ordered by value descending. Equal values are ordered by member
name descending (byte order), which is how Redis answers reverse queries.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from redis.asyncio.client import Redis as AsyncRedis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from zrank.core.exceptions import StoreError, StoreUnavailableError
from zrank.core.logging.logger import get_logger
from zrank.core.redis.metrics import RedisMetrics
from zrank.core.redis.resilience import CircuitBreakerOpenError, RedisResilience
from zrank.modules.leaderboard.models import ScoreEntry

logger = get_logger(__name__)


class RankStore(ABC):
    """Sorted-set operations for one leaderboard collection."""

    def __init__(self, collection: str) -> None:
        if not isinstance(collection, str) or not collection:
            raise ValueError("collection must be a non-empty string")
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    @abstractmethod
    async def get_score(self, member: str) -> Optional[float]:
        """Stored value of `member`, or None if absent."""

    @abstractmethod
    async def upsert(self, member: str, value: float) -> None:
        """Create or replace `member` with `value`."""

    @abstractmethod
    async def reverse_rank(self, member: str) -> Optional[int]:
        """Zero-based position of `member` from the highest value, or None."""

    @abstractmethod
    async def reverse_range_with_scores(self, start: int, end: int) -> List[ScoreEntry]:
        """Entries at zero-based positions `start`..`end` inclusive, highest first."""

    @abstractmethod
    async def compare_and_upsert(
        self,
        member: str,
        expected: Optional[float],
        value: float,
    ) -> bool:
        """
        Write `value` only if the current value of `member` equals `expected`
        (None: only if `member` is absent). Returns whether the write happened.
        """

    @abstractmethod
    async def count(self) -> int:
        """Number of members in the collection."""

    @staticmethod
    def _check_range(start: int, end: int) -> None:
        if start < 0 or end < 0:
            raise ValueError(f"range bounds must be non-negative, got {start}..{end}")


class RedisRankStore(RankStore):
    """
    Rank store on a Redis sorted set.

    Every command runs through `RedisResilience` (circuit breaker, optional
    retry) and is recorded in `RedisMetrics`.
    """

    # Conditional write: ARGV[2] == '' means "member must be absent".
    _LUA_COMPARE_AND_UPSERT = """
    local current = redis.call('ZSCORE', KEYS[1], ARGV[1])
    if ARGV[2] == '' then
        if current then
            return 0
        end
    else
        if (not current) or tonumber(current) ~= tonumber(ARGV[2]) then
            return 0
        end
    end
    redis.call('ZADD', KEYS[1], ARGV[3], ARGV[1])
    return 1
    """

    def __init__(
        self,
        client: AsyncRedis,
        collection: str = "leaderboard",
        resilience: Optional[RedisResilience] = None,
    ) -> None:
        super().__init__(collection)
        self._client = client
        self._resilience = resilience or RedisResilience()
        self._compare_and_upsert_script = client.register_script(
            self._LUA_COMPARE_AND_UPSERT
        )

    # ═══════════════════════════════════════════════════════════════════════
    # SORTED-SET OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_score(self, member: str) -> Optional[float]:
        result = await self._execute(
            "get_score",
            "ZSCORE",
            lambda: self._client.zscore(self._collection, member),
            member=member,
        )
        return None if result is None else float(result)

    async def upsert(self, member: str, value: float) -> None:
        await self._execute(
            "upsert",
            "ZADD",
            lambda: self._client.zadd(self._collection, {member: value}),
            member=member,
        )

    async def reverse_rank(self, member: str) -> Optional[int]:
        result = await self._execute(
            "reverse_rank",
            "ZREVRANK",
            lambda: self._client.zrevrank(self._collection, member),
            member=member,
        )
        return None if result is None else int(result)

    async def reverse_range_with_scores(self, start: int, end: int) -> List[ScoreEntry]:
        self._check_range(start, end)
        rows = await self._execute(
            "reverse_range_with_scores",
            "ZREVRANGE",
            lambda: self._client.zrevrange(self._collection, start, end, withscores=True),
        )
        return [
            ScoreEntry(member=self._decode_member(member), value=float(value))
            for member, value in rows
        ]

    async def compare_and_upsert(
        self,
        member: str,
        expected: Optional[float],
        value: float,
    ) -> bool:
        # A resent script cannot tell its own landed write from a concurrent one,
        # so the transport never retries it; the service loop re-reads instead.
        expected_arg = "" if expected is None else repr(float(expected))
        result = await self._execute(
            "compare_and_upsert",
            "EVALSHA",
            lambda: self._compare_and_upsert_script(
                keys=[self._collection],
                args=[member, expected_arg, value],
            ),
            member=member,
            max_attempts=1,
        )
        return bool(int(result))

    async def count(self) -> int:
        result = await self._execute(
            "count",
            "ZCARD",
            lambda: self._client.zcard(self._collection),
        )
        return int(result)

    # ═══════════════════════════════════════════════════════════════════════
    # EXECUTION & ERROR TRANSLATION
    # ═══════════════════════════════════════════════════════════════════════

    async def _execute(
        self,
        operation: str,
        command: str,
        call: Callable[[], Awaitable[Any]],
        member: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> Any:
        start_time = time.monotonic()
        try:
            result = await self._resilience.execute(
                operation=call,
                operation_name=f"{command}:{self._collection}",
                max_attempts=max_attempts,
            )
        except CircuitBreakerOpenError as exc:
            self._record_failure(operation, command, start_time, member, exc)
            raise StoreUnavailableError(operation, self._collection, member, exc) from exc
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            self._record_failure(operation, command, start_time, member, exc)
            raise StoreUnavailableError(operation, self._collection, member, exc) from exc
        except RedisError as exc:
            self._record_failure(operation, command, start_time, member, exc)
            raise StoreError(operation, self._collection, member, exc) from exc

        latency_ms = (time.monotonic() - start_time) * 1000
        RedisMetrics.record_operation(command, latency_ms, success=True)
        logger.debug(
            "Rank store operation",
            extra={
                "operation": operation,
                "command": command,
                "collection": self._collection,
                "member": member,
                "latency_ms": round(latency_ms, 2),
            },
        )
        return result

    def _record_failure(
        self,
        operation: str,
        command: str,
        start_time: float,
        member: Optional[str],
        exc: BaseException,
    ) -> None:
        latency_ms = (time.monotonic() - start_time) * 1000
        RedisMetrics.record_operation(command, latency_ms, success=False)
        logger.error(
            "Rank store operation failed",
            extra={
                "operation": operation,
                "command": command,
                "collection": self._collection,
                "member": member,
                "latency_ms": round(latency_ms, 2),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    @staticmethod
    def _decode_member(member: Any) -> str:
        if isinstance(member, bytes):
            return member.decode("utf-8")
        return str(member)


class InMemoryRankStore(RankStore):
    """
    Process-local rank store with the same ordering as a Redis sorted set.

    Values are held as floats, matching the double precision Redis applies.
    Used by tests and local runs without a Redis server.
    """

    def __init__(self, collection: str = "leaderboard") -> None:
        super().__init__(collection)
        self._values: Dict[str, float] = {}

    def _ordered(self) -> List[ScoreEntry]:
        items = sorted(self._values.items(), key=lambda kv: (kv[1], kv[0]), reverse=True)
        return [ScoreEntry(member=member, value=value) for member, value in items]

    async def get_score(self, member: str) -> Optional[float]:
        return self._values.get(member)

    async def upsert(self, member: str, value: float) -> None:
        self._values[member] = float(value)

    async def reverse_rank(self, member: str) -> Optional[int]:
        if member not in self._values:
            return None
        for position, entry in enumerate(self._ordered()):
            if entry.member == member:
                return position
        return None

    async def reverse_range_with_scores(self, start: int, end: int) -> List[ScoreEntry]:
        self._check_range(start, end)
        return self._ordered()[start:end + 1]

    async def compare_and_upsert(
        self,
        member: str,
        expected: Optional[float],
        value: float,
    ) -> bool:
        current = self._values.get(member)
        if expected is None:
            if current is not None:
                return False
        elif current is None or current != float(expected):
            return False
        self._values[member] = float(value)
        return True

    async def count(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()


__all__ = ["RankStore", "RedisRankStore", "InMemoryRankStore"]
