"""
Pytest Configuration and Fixtures for zrank Tests
==================================================

Purpose
-------
Shared fixtures for the zrank test suite: configuration reset, a fake clock,
in-memory and mocked rank stores, and a Redis testcontainer.

Architecture Notes
------------------
- Unit tests use InMemoryRankStore or a mocked Redis client (fast, isolated)
- Integration tests use testcontainers (real Redis)
- Environment is set before zrank is imported, since `Config` loads on import
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

PROJECT_ROOT = Path(__file__).resolve().parents[1]

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("ZRANK_CONFIG_DIR", str(PROJECT_ROOT / "config"))

import pytest  # noqa: E402
from testcontainers.redis import RedisContainer  # noqa: E402

from zrank.core.config import ConfigManager  # noqa: E402
from zrank.core.logging.logger import get_logger  # noqa: E402
from zrank.core.redis.metrics import RedisMetrics  # noqa: E402
from zrank.modules.leaderboard.service import LeaderboardService  # noqa: E402
from zrank.modules.leaderboard.store import InMemoryRankStore  # noqa: E402

logger = get_logger(__name__)

BASE_TIME = 1_700_000_000


# ============================================================================
# GLOBAL STATE
# ============================================================================


@pytest.fixture(autouse=True)
def reset_config() -> Generator[None, None, None]:
    """
    Give every test a fresh ConfigManager and empty Redis metrics.

    ConfigManager reloads the repository's YAML defaults on first access.
    """
    ConfigManager.clear_cache()
    RedisMetrics.reset()
    yield
    ConfigManager.clear_cache()
    RedisMetrics.reset()


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: int = BASE_TIME) -> None:
        self.now = now

    def advance(self, seconds: int = 1) -> int:
        self.now += seconds
        return self.now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# LEADERBOARD FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def memory_store() -> InMemoryRankStore:
    """Empty in-memory store for the `test_leaderboard` collection."""
    return InMemoryRankStore("test_leaderboard")


@pytest.fixture
def leaderboard_service(memory_store, clock) -> LeaderboardService:
    """
    LeaderboardService over the in-memory store with a fake clock.

    Scope: function (clean board per test)
    """
    return LeaderboardService(store=memory_store, config_manager=ConfigManager, clock=clock)


@pytest.fixture
def mock_redis_client(mocker):
    """
    Mock async Redis client exposing the sorted-set commands the store uses.

    `register_script` returns an AsyncMock standing in for the
    compare-and-upsert script; it reports a successful write by default.
    """
    client = mocker.MagicMock()
    client.zscore = mocker.AsyncMock(return_value=None)
    client.zadd = mocker.AsyncMock(return_value=1)
    client.zrevrank = mocker.AsyncMock(return_value=None)
    client.zrevrange = mocker.AsyncMock(return_value=[])
    client.zcard = mocker.AsyncMock(return_value=0)
    client.script = mocker.AsyncMock(return_value=1)
    client.register_script = mocker.MagicMock(return_value=client.script)
    return client


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_url(redis_container: RedisContainer) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"
