"""
LeaderboardService: score accumulation and rank queries over a RankStore.

Purpose
-------
Combine the score codec and a rank store into the leaderboard operations:

- update_score(delta, name)                    add to a player's score
- get_user_rank(name)                          1-based rank
- get_user_rank_and_top_players(name, window)  the player's neighbourhood
- get_player(name)                             score, rank and last update
- get_top_players(limit)                       the head of the board

Concurrency
-----------
The service holds no in-process lock. `update_score` is a read-modify-write
made safe by compare-and-upsert: if another writer changed the entry between
the read and the write, the update re-reads and tries again, up to
`leaderboard.cas.max_attempts` times, then raises `ConcurrentUpdateError`.

Every operation accepts `timeout` (seconds). The whole operation, including
compare-and-swap retries, must finish within it or `StoreUnavailableError`
is raised. Cancellation propagates unchanged.

Configuration Keys
------------------
- leaderboard.tie_break          : str (default "earliest_first")
- leaderboard.window.default     : int (default 10)
- leaderboard.window.max         : int (default 100)
- leaderboard.cas.max_attempts   : int (default 5)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from zrank.core.config import ConfigManager
from zrank.core.exceptions import StoreUnavailableError
from zrank.core.logging.logger import LogContext, get_logger
from zrank.modules.leaderboard.codec import ScoreCodec, TieBreak
from zrank.modules.leaderboard.models import Player
from zrank.modules.leaderboard.store import RankStore
from zrank.modules.shared.base_service import BaseService
from zrank.modules.shared.exceptions import (
    ConcurrentUpdateError,
    PlayerNotFoundError,
    ValidationError,
)
from zrank.modules.shared.validators import (
    validate_delta,
    validate_limit,
    validate_player_name,
    validate_timeout,
    validate_window,
)

T = TypeVar("T")

DEFAULT_WINDOW = 10
DEFAULT_MAX_WINDOW = 100
DEFAULT_CAS_ATTEMPTS = 5


def _epoch_seconds() -> int:
    return int(time.time())


class LeaderboardService(BaseService):
    """
    Leaderboard operations for one collection.

    Args:
        store: Rank store scoped to the leaderboard collection
        config_manager: Source of `leaderboard.*` settings
        logger: Logger; defaults to this module's logger
        codec: Score codec; defaults to one built from `leaderboard.tie_break`
        clock: Zero-argument callable returning epoch seconds
    """

    def __init__(
        self,
        store: RankStore,
        config_manager: Any = ConfigManager,
        logger: Optional[Any] = None,
        codec: Optional[ScoreCodec] = None,
        clock: Callable[[], int] = _epoch_seconds,
    ) -> None:
        super().__init__(config_manager, logger or get_logger(__name__))
        self._store = store
        self._codec = codec or ScoreCodec.from_config(config_manager)
        self._clock = clock

    @property
    def store(self) -> RankStore:
        return self._store

    @property
    def codec(self) -> ScoreCodec:
        return self._codec

    @property
    def collection(self) -> str:
        return self._store.collection

    # =========================================================================
    # UPDATES
    # =========================================================================

    async def update_score(
        self,
        delta: int,
        name: str,
        *,
        timeout: Optional[float] = None,
    ) -> Player:
        """
        Add `delta` to the player's accumulated score and stamp the update time.

        A player without an entry starts at 0. Negative deltas are allowed;
        the resulting score must stay within [0, 999999].

        Returns:
            The player with the new score and update time (`rank` is None)

        Raises:
            ValidationError: Bad name, delta or timeout
            EncodingError: New score out of range (nothing written)
            ConcurrentUpdateError: Compare-and-swap budget exhausted
            StoreError / StoreUnavailableError: Store failure or deadline hit
        """
        validate_player_name(name)
        validate_delta(delta)
        validate_timeout(timeout)

        async with LogContext(
            player=name, collection=self.collection, operation="update_score"
        ):
            return await self._with_deadline(
                "update_score", name, timeout, lambda: self._update_score(delta, name)
            )

    async def _update_score(self, delta: int, name: str) -> Player:
        max_attempts = self.get_config_int(
            "leaderboard.cas.max_attempts", DEFAULT_CAS_ATTEMPTS, min_val=1
        )

        for attempt in range(1, max_attempts + 1):
            current = await self._store.get_score(name)
            existing_score = 0 if current is None else self._codec.decode(current)[0]

            new_score = existing_score + delta
            updated_at = self._clock()
            key = self._codec.encode(new_score, updated_at)

            if await self._store.compare_and_upsert(name, current, key):
                self.log.info(
                    "Score updated",
                    extra={
                        "player": name,
                        "delta": delta,
                        "previous_score": existing_score,
                        "score": new_score,
                        "attempt": attempt,
                    },
                )
                return Player(name=name, score=new_score, rank=None, updated_at=updated_at)

            self.log.debug(
                "Concurrent score update detected, retrying",
                extra={"player": name, "attempt": attempt, "max_attempts": max_attempts},
            )

        error = ConcurrentUpdateError(name, max_attempts)
        self.log_error("update_score", error, player=name, collection=self.collection)
        raise error

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_user_rank(self, name: str, *, timeout: Optional[float] = None) -> int:
        """
        1-based rank of the player (1 is the best).

        Raises:
            PlayerNotFoundError: Player has no entry (its `rank` is -1)
        """
        validate_player_name(name)
        validate_timeout(timeout)

        async with LogContext(
            player=name, collection=self.collection, operation="get_user_rank"
        ):
            return await self._with_deadline(
                "get_user_rank", name, timeout, lambda: self._get_user_rank(name)
            )

    async def _get_user_rank(self, name: str) -> int:
        position = await self._store.reverse_rank(name)
        if position is None:
            raise self._not_found(name, "get_user_rank")
        return position + 1

    async def get_user_rank_and_top_players(
        self,
        name: str,
        window: Optional[int] = None,
        *,
        timeout: Optional[float] = None,
    ) -> List[Player]:
        """
        The player and up to `window` players on each side, best rank first.

        `window` defaults to `leaderboard.window.default` and may not exceed
        `leaderboard.window.max`. Near the top the window is clipped, so the
        list holds fewer than `2 * window + 1` players.

        Raises:
            PlayerNotFoundError: Player has no entry
            ValidationError: Bad window
        """
        validate_player_name(name)
        validate_timeout(timeout)
        if window is None:
            window = self.get_config_int("leaderboard.window.default", DEFAULT_WINDOW)
        validate_window(window, self._max_window())

        async with LogContext(
            player=name,
            collection=self.collection,
            operation="get_user_rank_and_top_players",
        ):
            return await self._with_deadline(
                "get_user_rank_and_top_players",
                name,
                timeout,
                lambda: self._get_user_rank_and_top_players(name, window),
            )

    async def _get_user_rank_and_top_players(self, name: str, window: int) -> List[Player]:
        position = await self._store.reverse_rank(name)
        if position is None:
            raise self._not_found(name, "get_user_rank_and_top_players")

        start = max(0, position - window)
        end = position + window
        entries = await self._store.reverse_range_with_scores(start, end)

        players = []
        for offset, entry in enumerate(entries):
            score, updated_at = self._codec.decode(entry.value)
            players.append(
                Player(
                    name=entry.member,
                    score=score,
                    rank=start + offset + 1,
                    updated_at=updated_at,
                )
            )

        self.log.debug(
            "Rank window fetched",
            extra={"player": name, "rank": position + 1, "start": start, "end": end,
                   "returned": len(players)},
        )
        return players

    async def get_player(self, name: str, *, timeout: Optional[float] = None) -> Player:
        """
        The player's decoded score, last update time and 1-based rank.

        Raises:
            PlayerNotFoundError: Player has no entry
        """
        validate_player_name(name)
        validate_timeout(timeout)

        async with LogContext(player=name, collection=self.collection, operation="get_player"):
            return await self._with_deadline(
                "get_player", name, timeout, lambda: self._get_player(name)
            )

    async def _get_player(self, name: str) -> Player:
        value = await self._store.get_score(name)
        if value is None:
            raise self._not_found(name, "get_player")

        position = await self._store.reverse_rank(name)
        if position is None:
            raise self._not_found(name, "get_player")

        score, updated_at = self._codec.decode(value)
        return Player(name=name, score=score, rank=position + 1, updated_at=updated_at)

    async def get_top_players(
        self,
        limit: int = DEFAULT_WINDOW,
        *,
        timeout: Optional[float] = None,
    ) -> List[Player]:
        """The best `limit` players, best first. `limit` is 1..`leaderboard.window.max`."""
        validate_limit(limit, self._max_window())
        validate_timeout(timeout)

        async with LogContext(collection=self.collection, operation="get_top_players"):
            return await self._with_deadline(
                "get_top_players", None, timeout, lambda: self._get_top_players(limit)
            )

    async def _get_top_players(self, limit: int) -> List[Player]:
        entries = await self._store.reverse_range_with_scores(0, limit - 1)
        players = []
        for position, entry in enumerate(entries, start=1):
            score, updated_at = self._codec.decode(entry.value)
            players.append(
                Player(name=entry.member, score=score, rank=position, updated_at=updated_at)
            )
        return players

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _max_window(self) -> int:
        return self.get_config_int("leaderboard.window.max", DEFAULT_MAX_WINDOW)

    def _not_found(self, name: str, operation: str) -> PlayerNotFoundError:
        self.log.info(
            "Player not ranked",
            extra={"player": name, "operation": operation},
        )
        return PlayerNotFoundError(name, self.collection)

    async def _with_deadline(
        self,
        operation: str,
        member: Optional[str],
        timeout: Optional[float],
        call: Callable[[], Awaitable[T]],
    ) -> T:
        if timeout is None:
            return await call()

        try:
            return await asyncio.wait_for(call(), timeout)
        except asyncio.TimeoutError as exc:
            self.log.warning(
                "Leaderboard operation deadline exceeded",
                extra={
                    "operation": operation,
                    "player": member,
                    "timeout_seconds": timeout,
                },
            )
            raise StoreUnavailableError(operation, self.collection, member, exc) from exc


# =============================================================================
# CONFIG VALIDATORS
# =============================================================================


def _validate_tie_break(value: Any) -> str:
    try:
        return TieBreak(str(value).strip().lower()).value
    except ValueError as exc:
        raise ValidationError(
            "tie_break",
            f"must be one of {[policy.value for policy in TieBreak]}, got {value!r}",
        ) from exc


def _validate_positive_int(field: str) -> Callable[[Any], int]:
    def validator(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(field, f"must be a positive integer, got {value!r}")
        return value

    validator.__name__ = f"validate_{field}"
    return validator


def register_config_validators(config_manager: Any = ConfigManager) -> None:
    """Register validators for runtime overrides of `leaderboard.*` keys."""
    config_manager.register_validator("leaderboard.tie_break", _validate_tie_break)
    config_manager.register_validator(
        "leaderboard.window.default", _validate_positive_int("window_default")
    )
    config_manager.register_validator(
        "leaderboard.window.max", _validate_positive_int("window_max")
    )
    config_manager.register_validator(
        "leaderboard.cas.max_attempts", _validate_positive_int("cas_max_attempts")
    )


__all__ = ["LeaderboardService", "register_config_validators"]
