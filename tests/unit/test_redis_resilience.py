"""
Unit tests for RedisResilience.

Tests circuit breaker transitions and the retry policy. Thresholds are set
through ConfigManager overrides before the resilience layer is built.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from zrank.core.config import ConfigManager
from zrank.core.redis.resilience import (
    CircuitBreakerOpenError,
    CircuitState,
    RedisResilience,
)

pytestmark = pytest.mark.unit


@pytest.fixture
async def fast_retry():
    """Three attempts without backoff delay."""
    await ConfigManager.set("core.redis.resilience.retry.max_attempts", 3)
    await ConfigManager.set("core.redis.resilience.retry.initial_delay_seconds", 0.0)
    await ConfigManager.set("core.redis.resilience.retry.jitter", False)


class TestRetryPolicy:
    """Test attempt budgets."""

    async def test_success_passes_result_through(self, mocker):
        operation = mocker.AsyncMock(return_value=42)
        resilience = RedisResilience()

        assert await resilience.execute(operation, "zscore") == 42
        assert resilience.is_closed

    async def test_no_retry_by_default(self, mocker):
        operation = mocker.AsyncMock(side_effect=RedisConnectionError("refused"))
        resilience = RedisResilience()

        with pytest.raises(RedisConnectionError):
            await resilience.execute(operation, "zscore")

        assert resilience.retry_max_attempts == 1
        assert operation.await_count == 1

    async def test_retries_transient_errors_when_configured(self, fast_retry, mocker):
        operation = mocker.AsyncMock(
            side_effect=[RedisConnectionError("refused"), RedisConnectionError("refused"), 7]
        )
        resilience = RedisResilience()

        assert await resilience.execute(operation, "zscore") == 7
        assert operation.await_count == 3

    async def test_does_not_retry_server_errors(self, fast_retry, mocker):
        operation = mocker.AsyncMock(side_effect=ResponseError("WRONGTYPE"))
        resilience = RedisResilience()

        with pytest.raises(ResponseError):
            await resilience.execute(operation, "zadd")

        assert operation.await_count == 1

    async def test_per_call_attempt_override(self, fast_retry, mocker):
        operation = mocker.AsyncMock(side_effect=RedisConnectionError("refused"))
        resilience = RedisResilience()

        with pytest.raises(RedisConnectionError):
            await resilience.execute(operation, "zscore", max_attempts=2)

        assert operation.await_count == 2


class TestCircuitBreaker:
    """Test circuit state transitions."""

    async def test_opens_after_failure_threshold(self, mocker):
        await ConfigManager.set("core.redis.resilience.circuit.failure_threshold", 3)
        failing = mocker.AsyncMock(side_effect=RedisConnectionError("refused"))
        resilience = RedisResilience()

        for _ in range(3):
            with pytest.raises(RedisConnectionError):
                await resilience.execute(failing, "zscore")

        assert resilience.state is CircuitState.OPEN

        probe = mocker.AsyncMock(return_value=1)
        with pytest.raises(CircuitBreakerOpenError):
            await resilience.execute(probe, "zscore")
        probe.assert_not_awaited()

    async def test_success_resets_failure_count(self, mocker):
        await ConfigManager.set("core.redis.resilience.circuit.failure_threshold", 2)
        failing = mocker.AsyncMock(side_effect=RedisConnectionError("refused"))
        succeeding = mocker.AsyncMock(return_value=1)
        resilience = RedisResilience()

        with pytest.raises(RedisConnectionError):
            await resilience.execute(failing, "zscore")
        await resilience.execute(succeeding, "zscore")
        with pytest.raises(RedisConnectionError):
            await resilience.execute(failing, "zscore")

        assert resilience.is_closed

    async def test_half_open_then_closed(self, mocker):
        await ConfigManager.set("core.redis.resilience.circuit.timeout_seconds", 0)
        await ConfigManager.set("core.redis.resilience.circuit.success_threshold", 2)
        operation = mocker.AsyncMock(return_value=1)
        resilience = RedisResilience()
        await resilience.force_open()

        await resilience.execute(operation, "zscore")
        assert resilience.state is CircuitState.HALF_OPEN

        await resilience.execute(operation, "zscore")
        assert resilience.state is CircuitState.CLOSED

    async def test_half_open_failure_reopens(self, mocker):
        await ConfigManager.set("core.redis.resilience.circuit.timeout_seconds", 0)
        failing = mocker.AsyncMock(side_effect=RedisConnectionError("refused"))
        resilience = RedisResilience()
        await resilience.force_open()

        with pytest.raises(RedisConnectionError):
            await resilience.execute(failing, "zscore")

        assert resilience.is_open

    async def test_reset(self):
        resilience = RedisResilience()
        await resilience.force_open()

        await resilience.reset()

        status = resilience.get_status()
        assert status["circuit_state"] == "CLOSED"
        assert status["failure_count"] == 0
        assert status["opened_at"] is None
