"""
Unit tests for rank store adapters.

InMemoryRankStore is tested directly; RedisRankStore against a mocked async
Redis client, checking the commands issued and the error translation.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from zrank.core.config import ConfigManager
from zrank.core.exceptions import StoreError, StoreUnavailableError
from zrank.core.redis.metrics import RedisMetrics
from zrank.core.redis.resilience import RedisResilience
from zrank.modules.leaderboard.models import ScoreEntry
from zrank.modules.leaderboard.service import LeaderboardService
from zrank.modules.leaderboard.store import InMemoryRankStore, RedisRankStore

pytestmark = [pytest.mark.unit, pytest.mark.store]


class TestInMemoryRankStore:
    """Test the in-memory sorted set."""

    async def test_missing_member_is_none(self, memory_store):
        assert await memory_store.get_score("ghost") is None
        assert await memory_store.reverse_rank("ghost") is None

    async def test_upsert_and_get(self, memory_store):
        await memory_store.upsert("alice", 150)

        assert await memory_store.get_score("alice") == 150.0
        assert await memory_store.count() == 1

    async def test_upsert_replaces(self, memory_store):
        await memory_store.upsert("alice", 150)
        await memory_store.upsert("alice", 90)

        assert await memory_store.get_score("alice") == 90.0
        assert await memory_store.count() == 1

    async def test_reverse_rank_orders_by_value_descending(self, memory_store):
        await memory_store.upsert("low", 10)
        await memory_store.upsert("high", 30)
        await memory_store.upsert("mid", 20)

        assert await memory_store.reverse_rank("high") == 0
        assert await memory_store.reverse_rank("mid") == 1
        assert await memory_store.reverse_rank("low") == 2

    async def test_equal_values_ordered_by_member_descending(self, memory_store):
        """Same answer Redis gives for ZREVRANGE on ties."""
        for name in ("anna", "carl", "bob"):
            await memory_store.upsert(name, 50)

        entries = await memory_store.reverse_range_with_scores(0, 2)

        assert [entry.member for entry in entries] == ["carl", "bob", "anna"]

    async def test_range_is_inclusive_and_clipped(self, memory_store):
        for index in range(5):
            await memory_store.upsert(f"p{index}", index)

        entries = await memory_store.reverse_range_with_scores(1, 2)
        assert entries == [ScoreEntry("p3", 3.0), ScoreEntry("p2", 2.0)]

        tail = await memory_store.reverse_range_with_scores(3, 50)
        assert [entry.member for entry in tail] == ["p1", "p0"]

    async def test_range_rejects_negative_bounds(self, memory_store):
        with pytest.raises(ValueError):
            await memory_store.reverse_range_with_scores(-1, 3)

    async def test_compare_and_upsert_on_absent_member(self, memory_store):
        assert await memory_store.compare_and_upsert("alice", None, 100) is True
        assert await memory_store.get_score("alice") == 100.0

        # Member now exists, so "expect absent" fails
        assert await memory_store.compare_and_upsert("alice", None, 200) is False
        assert await memory_store.get_score("alice") == 100.0

    async def test_compare_and_upsert_on_existing_member(self, memory_store):
        await memory_store.upsert("alice", 100)

        assert await memory_store.compare_and_upsert("alice", 99, 300) is False
        assert await memory_store.compare_and_upsert("alice", 100.0, 300) is True
        assert await memory_store.get_score("alice") == 300.0

    async def test_clear(self, memory_store):
        await memory_store.upsert("alice", 1)
        memory_store.clear()
        assert await memory_store.count() == 0

    def test_collection_must_be_named(self):
        with pytest.raises(ValueError):
            InMemoryRankStore("")


class TestRedisRankStoreCommands:
    """Test the Redis commands issued for each operation."""

    async def test_registers_compare_and_upsert_script(self, mock_redis_client):
        RedisRankStore(mock_redis_client, collection="scores")

        mock_redis_client.register_script.assert_called_once()
        script = mock_redis_client.register_script.call_args.args[0]
        assert "ZSCORE" in script and "ZADD" in script

    async def test_get_score(self, mock_redis_client):
        mock_redis_client.zscore.return_value = 1_508_299_999_999.0
        store = RedisRankStore(mock_redis_client, collection="scores")

        assert await store.get_score("alice") == 1_508_299_999_999.0
        mock_redis_client.zscore.assert_awaited_once_with("scores", "alice")

    async def test_get_score_absent(self, mock_redis_client):
        store = RedisRankStore(mock_redis_client, collection="scores")
        assert await store.get_score("ghost") is None

    async def test_upsert(self, mock_redis_client):
        store = RedisRankStore(mock_redis_client, collection="scores")

        await store.upsert("alice", 42)

        mock_redis_client.zadd.assert_awaited_once_with("scores", {"alice": 42})

    async def test_reverse_rank(self, mock_redis_client):
        mock_redis_client.zrevrank.return_value = 3
        store = RedisRankStore(mock_redis_client, collection="scores")

        assert await store.reverse_rank("alice") == 3
        mock_redis_client.zrevrank.assert_awaited_once_with("scores", "alice")

    async def test_reverse_rank_absent(self, mock_redis_client):
        store = RedisRankStore(mock_redis_client, collection="scores")
        assert await store.reverse_rank("ghost") is None

    async def test_reverse_range_decodes_members(self, mock_redis_client):
        mock_redis_client.zrevrange.return_value = [(b"bob", 20.0), ("alice", 10.0)]
        store = RedisRankStore(mock_redis_client, collection="scores")

        entries = await store.reverse_range_with_scores(0, 9)

        assert entries == [ScoreEntry("bob", 20.0), ScoreEntry("alice", 10.0)]
        mock_redis_client.zrevrange.assert_awaited_once_with(
            "scores", 0, 9, withscores=True
        )

    async def test_compare_and_upsert_absent_member(self, mock_redis_client):
        store = RedisRankStore(mock_redis_client, collection="scores")

        assert await store.compare_and_upsert("alice", None, 100) is True
        mock_redis_client.script.assert_awaited_once_with(
            keys=["scores"], args=["alice", "", 100]
        )

    async def test_compare_and_upsert_conflict(self, mock_redis_client):
        mock_redis_client.script.return_value = 0
        store = RedisRankStore(mock_redis_client, collection="scores")

        assert await store.compare_and_upsert("alice", 50.0, 100) is False
        mock_redis_client.script.assert_awaited_once_with(
            keys=["scores"], args=["alice", "50.0", 100]
        )

    async def test_count(self, mock_redis_client):
        mock_redis_client.zcard.return_value = 7
        store = RedisRankStore(mock_redis_client, collection="scores")

        assert await store.count() == 7

    async def test_records_metrics(self, mock_redis_client):
        store = RedisRankStore(mock_redis_client, collection="scores")

        await store.get_score("alice")

        metrics = RedisMetrics.get_operation_metrics("ZSCORE")
        assert metrics["total_count"] == 1
        assert metrics["success_count"] == 1


class TestRedisRankStoreErrors:
    """Test translation of Redis failures into store errors."""

    async def test_connection_error_is_unavailable(self, mock_redis_client):
        mock_redis_client.zscore.side_effect = RedisConnectionError("refused")
        store = RedisRankStore(mock_redis_client, collection="scores")

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.get_score("alice")

        error = exc_info.value
        assert error.is_retryable is True
        assert error.details["operation"] == "get_score"
        assert error.details["collection"] == "scores"
        assert error.details["member"] == "alice"
        assert isinstance(error.__cause__, RedisConnectionError)

    async def test_timeout_is_unavailable(self, mock_redis_client):
        mock_redis_client.zrevrank.side_effect = RedisTimeoutError("slow")
        store = RedisRankStore(mock_redis_client, collection="scores")

        with pytest.raises(StoreUnavailableError):
            await store.reverse_rank("alice")

    async def test_response_error_is_store_error(self, mock_redis_client):
        mock_redis_client.zadd.side_effect = ResponseError("WRONGTYPE")
        store = RedisRankStore(mock_redis_client, collection="scores")

        with pytest.raises(StoreError) as exc_info:
            await store.upsert("alice", 1)

        assert not isinstance(exc_info.value, StoreUnavailableError)
        assert exc_info.value.details["operation"] == "upsert"

    async def test_failure_recorded_in_metrics(self, mock_redis_client):
        mock_redis_client.zcard.side_effect = RedisConnectionError("refused")
        store = RedisRankStore(mock_redis_client, collection="scores")

        with pytest.raises(StoreUnavailableError):
            await store.count()

        assert RedisMetrics.get_operation_metrics("ZCARD")["failure_count"] == 1

    async def test_open_circuit_is_unavailable(self, mock_redis_client):
        resilience = RedisResilience()
        await resilience.force_open()
        store = RedisRankStore(mock_redis_client, collection="scores", resilience=resilience)

        with pytest.raises(StoreUnavailableError):
            await store.get_score("alice")

        mock_redis_client.zscore.assert_not_awaited()


class TestCompareAndUpsertIsNotResent:
    """Test that a lost script reply surfaces instead of being resent."""

    @pytest.fixture
    async def transport_retries(self):
        await ConfigManager.set("core.redis.resilience.retry.max_attempts", 3)
        await ConfigManager.set("core.redis.resilience.retry.initial_delay_seconds", 0.0)
        await ConfigManager.set("core.redis.resilience.retry.jitter", False)

    async def test_script_sent_once_while_reads_retry(self, transport_retries, mock_redis_client):
        mock_redis_client.script.side_effect = RedisConnectionError("reset by peer")
        mock_redis_client.zscore.side_effect = [RedisConnectionError("reset by peer"), None]
        store = RedisRankStore(mock_redis_client, collection="scores")

        assert await store.get_score("alice") is None
        assert mock_redis_client.zscore.await_count == 2

        with pytest.raises(StoreUnavailableError):
            await store.compare_and_upsert("alice", None, 100)
        assert mock_redis_client.script.await_count == 1

    async def test_update_with_lost_reply_applies_delta_once(
        self, transport_retries, mock_redis_client, clock
    ):
        stored = {}

        async def zscore(collection, member):
            return stored.get(member)

        async def script_lands_then_drops_reply(keys, args):
            member, expected, value = args
            current = stored.get(member)
            if (expected == "" and current is not None) or (
                expected != "" and current != float(expected)
            ):
                return 0
            stored[member] = float(value)
            raise RedisConnectionError("connection lost before reply")

        mock_redis_client.zscore.side_effect = zscore
        mock_redis_client.script.side_effect = script_lands_then_drops_reply
        service = LeaderboardService(
            store=RedisRankStore(mock_redis_client, collection="scores"),
            config_manager=ConfigManager,
            clock=clock,
        )

        with pytest.raises(StoreUnavailableError):
            await service.update_score(10, "alice")

        assert service.codec.decode(stored["alice"])[0] == 10
        assert mock_redis_client.script.await_count == 1
