"""
Pytest Configuration and Fixtures for the Dodgeboard Test Suite
================================================================

Purpose
-------
Shared fixtures for unit and integration tests.

Responsibilities
----------------
- Force the testing environment before any dodgeboard import
- Temp-file SQLite DatabaseService for unit tests
- Mocked redis-py client wired into a real RedisService
- Testcontainers Postgres and Redis for integration tests

Architecture Notes
------------------
- Unit tests use SQLite (aiosqlite) and mocked Redis (fast, isolated)
- Integration tests use testcontainers (real Postgres/Redis)
- ConfigManager is reset around every test so overrides never leak
"""

from __future__ import annotations

import os

os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("ADMIN_CODE", "test-admin-code")

from typing import AsyncGenerator, Generator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from dodgeboard.core.config.manager import ConfigManager  # noqa: E402
from dodgeboard.core.database.service import DatabaseService  # noqa: E402
from dodgeboard.core.logging.logger import get_logger  # noqa: E402
from dodgeboard.core.redis.circuit_breaker import RedisCircuitBreaker  # noqa: E402
from dodgeboard.core.redis.service import RedisService  # noqa: E402
from dodgeboard.modules.ranking import DailyRankingStore, ScoreRepository  # noqa: E402

logger = get_logger(__name__)

ADMIN_CODE = "test-admin-code"


# ============================================================================
# CONFIGURATION
# ============================================================================


@pytest.fixture(autouse=True)
def reset_config_manager() -> Generator[None, None, None]:
    ConfigManager.reset()
    ConfigManager.initialize()
    yield
    ConfigManager.reset()


# ============================================================================
# DATABASE FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'dodgeboard.db'}"


@pytest_asyncio.fixture
async def database(sqlite_url: str) -> AsyncGenerator[DatabaseService, None]:
    """
    Fresh SQLite database per test, schema created.

    A file (not :memory:) so concurrent sessions see the same data.
    """
    service = DatabaseService(sqlite_url)
    await service.initialize()
    await service.create_schema()
    yield service
    await service.shutdown()


@pytest.fixture
def score_repository() -> ScoreRepository:
    return ScoreRepository(get_logger("tests.scores"))


# ============================================================================
# REDIS FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def redis_client(mocker):
    """
    Mocked redis.asyncio client.

    Commands are AsyncMocks; `pipeline()` is synchronous and returns a
    pipeline whose queued commands are plain calls and whose `execute()` is
    awaited, matching redis-py.
    """
    client = mocker.MagicMock(name="redis_client")
    pipeline = mocker.MagicMock(name="pipeline")
    pipeline.execute = mocker.AsyncMock(return_value=[1, True, 0])
    client.pipeline.return_value = pipeline

    client.ping = mocker.AsyncMock(return_value=True)
    client.zrevrange = mocker.AsyncMock(return_value=[])
    client.zcard = mocker.AsyncMock(return_value=0)
    client.zrem = mocker.AsyncMock(return_value=1)
    client.delete = mocker.AsyncMock(return_value=1)
    client.get = mocker.AsyncMock(return_value=None)
    client.set = mocker.AsyncMock(return_value=True)
    client.aclose = mocker.AsyncMock()
    return client


@pytest.fixture
def broken_redis_client(redis_client):
    """Every command fails the way a dropped connection does."""
    failure = RedisConnectionError("Connection refused")
    redis_client.pipeline.return_value.execute.side_effect = failure
    for command in ("ping", "zrevrange", "zcard", "zrem", "delete", "get", "set"):
        getattr(redis_client, command).side_effect = failure
    return redis_client


@pytest.fixture
def breaker_clock():
    """Manually advanced monotonic clock."""

    class _Clock:
        now = 1000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return _Clock()


@pytest.fixture
def redis_service(redis_client, breaker_clock) -> RedisService:
    breaker = RedisCircuitBreaker(failure_threshold=1, timeout_seconds=30, clock=breaker_clock)
    return RedisService("redis://test:6379/0", client=redis_client, circuit_breaker=breaker)


@pytest.fixture
def broken_redis_service(broken_redis_client, breaker_clock) -> RedisService:
    breaker = RedisCircuitBreaker(failure_threshold=1, timeout_seconds=30, clock=breaker_clock)
    return RedisService(
        "redis://test:6379/0", client=broken_redis_client, circuit_breaker=breaker
    )


@pytest.fixture
def daily_store(redis_service: RedisService) -> DailyRankingStore:
    return DailyRankingStore(redis_service)


@pytest.fixture
def broken_daily_store(broken_redis_service: RedisService) -> DailyRankingStore:
    return DailyRankingStore(broken_redis_service)


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container():
    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:16-alpine", driver="asyncpg")
    container.start()
    yield container
    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


@pytest.fixture(scope="session")
def redis_container():
    from testcontainers.redis import RedisContainer

    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()
    yield container
    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest.fixture
def redis_url(redis_container) -> str:
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    return f"redis://{host}:{port}/0"


@pytest_asyncio.fixture
async def postgres_database(postgres_container) -> AsyncGenerator[DatabaseService, None]:
    """Clean schema per test on the shared Postgres container."""
    url = postgres_container.get_connection_url()
    service = DatabaseService(url, use_null_pool=True)
    await service.initialize()
    await service.drop_schema()
    await service.create_schema()
    yield service
    await service.shutdown()


@pytest_asyncio.fixture
async def live_redis(redis_url: str) -> AsyncGenerator[RedisService, None]:
    service = RedisService(redis_url)
    await service.execute("FLUSHDB", lambda client: client.flushdb())
    yield service
    await service.shutdown()


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def flag_service(database, score_repository):
    from dodgeboard.modules.anticheat import FlagService

    return FlagService(database, score_repository, ConfigManager, get_logger("tests.flags"))


@pytest.fixture
def reward_service(database):
    from dodgeboard.modules.rewards import RewardService

    return RewardService(database, ConfigManager, get_logger("tests.rewards"))


@pytest.fixture
def submission_factory(database, score_repository, flag_service):
    """Build a SubmissionService over the given daily store."""
    from dodgeboard.modules.anticheat import AntiCheatGate
    from dodgeboard.modules.submission import SubmissionService

    def _build(daily: DailyRankingStore):
        return SubmissionService(
            database,
            score_repository,
            daily,
            AntiCheatGate(),
            flag_service,
            ConfigManager,
            get_logger("tests.submission"),
        )

    return _build


@pytest.fixture
def submission_service(submission_factory, daily_store):
    return submission_factory(daily_store)


@pytest.fixture
def leaderboard_service(database, score_repository, daily_store):
    from dodgeboard.modules.leaderboard import LeaderboardService

    return LeaderboardService(
        database, score_repository, daily_store, ConfigManager, get_logger("tests.leaderboard")
    )


@pytest.fixture
def profile_service(database, redis_service, score_repository):
    from dodgeboard.modules.profile import ProfileService

    return ProfileService(
        database, redis_service, score_repository, ConfigManager, get_logger("tests.profile")
    )


@pytest.fixture
def admin_service(database, score_repository, daily_store, flag_service, reward_service):
    from dodgeboard.modules.admin import AdminService

    return AdminService(
        database,
        score_repository,
        daily_store,
        flag_service,
        reward_service,
        ConfigManager,
        get_logger("tests.admin"),
        admin_code=ADMIN_CODE,
    )
