"""
Service Container
=================

Purpose
-------
Own the store clients and build every domain service around them.

Responsibilities
----------------
- Create DatabaseService and RedisService (or accept injected ones)
- Ensure the database schema exists
- Build repositories and services with their dependencies
- Log a startup health summary and shut the stores down gracefully

Non-Responsibilities
--------------------
- HTTP concerns (dodgeboard.api)
- Business logic (domain services)

Architecture Notes
------------------
- The database is mandatory: a failed connect aborts startup.
- Redis is optional: the container starts without it and RedisService
  reconnects later through its circuit breaker.
"""

from __future__ import annotations

import time
from dataclasses import asdict
from typing import TYPE_CHECKING, Any, Dict, Optional

from dodgeboard.core.config.config import Config
from dodgeboard.core.config.manager import ConfigManager
from dodgeboard.core.database.service import DatabaseService
from dodgeboard.core.logging.logger import get_logger, get_logging_health
from dodgeboard.core.redis.service import RedisService
from dodgeboard.modules.admin import AdminService
from dodgeboard.modules.anticheat import AntiCheatGate, FlagService
from dodgeboard.modules.leaderboard import LeaderboardService
from dodgeboard.modules.profile import ProfileService
from dodgeboard.modules.ranking import DailyRankingStore, ScoreRepository
from dodgeboard.modules.rewards import RewardService
from dodgeboard.modules.submission import SubmissionService

if TYPE_CHECKING:
    from logging import Logger


class ContainerNotInitializedError(RuntimeError):
    pass


class ServiceContainer:
    """
    Usage:
        container = ServiceContainer()
        await container.initialize()
        result = await container.submission.submit(...)
        await container.shutdown()
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | ConfigManager = ConfigManager,
        logger: Optional[Logger] = None,
        *,
        database: Optional[DatabaseService] = None,
        redis: Optional[RedisService] = None,
        admin_code: Optional[str] = None,
        create_schema: bool = True,
    ) -> None:
        self._config_manager = config_manager
        self._logger = logger or get_logger(__name__)
        self._admin_code = admin_code
        self._create_schema = create_schema

        self.database = database or DatabaseService()
        self.redis = redis or RedisService()

        self._scores: Optional[ScoreRepository] = None
        self._daily: Optional[DailyRankingStore] = None
        self._gate: Optional[AntiCheatGate] = None
        self._flags: Optional[FlagService] = None
        self._rewards: Optional[RewardService] = None
        self._profiles: Optional[ProfileService] = None
        self._submission: Optional[SubmissionService] = None
        self._leaderboard: Optional[LeaderboardService] = None
        self._admin: Optional[AdminService] = None

        self._initialized = False
        self._redis_connected = False
        self._service_init_times: Dict[str, float] = {}
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        if hasattr(self._config_manager, "initialize"):
            self._config_manager.initialize()

        await self.database.initialize()
        if self._create_schema:
            await self.database.create_schema()

        self._redis_connected = await self.redis.initialize()

        self._build_services()

        self._init_end = time.perf_counter()
        self._initialized = True
        await self._log_startup_summary()

    def _build_services(self) -> None:
        self._scores = self._timed(
            "score_repository",
            lambda: ScoreRepository(get_logger(f"{ScoreRepository.__module__}.ScoreRepository")),
        )
        self._daily = self._timed("daily_store", lambda: DailyRankingStore(self.redis))
        self._gate = self._timed("anticheat_gate", AntiCheatGate)

        self._flags = self._create_service(
            "flags", FlagService, database=self.database, scores=self._scores
        )
        self._rewards = self._create_service("rewards", RewardService, database=self.database)
        self._profiles = self._create_service(
            "profiles",
            ProfileService,
            database=self.database,
            redis=self.redis,
            scores=self._scores,
        )
        self._submission = self._create_service(
            "submission",
            SubmissionService,
            database=self.database,
            scores=self._scores,
            daily=self._daily,
            gate=self._gate,
            flags=self._flags,
        )
        self._leaderboard = self._create_service(
            "leaderboard",
            LeaderboardService,
            database=self.database,
            scores=self._scores,
            daily=self._daily,
        )
        self._admin = self._create_service(
            "admin",
            AdminService,
            database=self.database,
            scores=self._scores,
            daily=self._daily,
            flags=self._flags,
            rewards=self._rewards,
            admin_code=self._admin_code,
        )

    def _timed(self, name: str, factory: Any) -> Any:
        start = time.perf_counter()
        instance = factory()
        self._service_init_times[name] = time.perf_counter() - start
        return instance

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        start = time.perf_counter()

        try:
            instance = cls(
                config_manager=self._config_manager,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")

        return instance

    async def _log_startup_summary(self) -> None:
        database_ok = await self.database.health_check()
        status = "ONLINE" if database_ok and self._redis_connected else "PARTIAL"

        self._logger.info(f"Dodgeboard services initialized: {status}")
        self._logger.info(
            f"{'✓' if database_ok else '✗'} Database: "
            f"{'connected' if database_ok else 'unreachable'} ({self.database.dialect_name})"
        )
        if self._redis_connected:
            self._logger.info("✓ Redis: connected (daily leaderboard live)")
        else:
            self._logger.warning("⚠ Redis: unavailable (daily leaderboard served from the score ledger)")
        self._logger.info(
            f"✓ Environment: {Config.ENVIRONMENT} | admin code "
            f"{'set' if self._admin_code or Config.ADMIN_CODE else 'NOT SET'}"
        )

    async def shutdown(self) -> None:
        if not self._initialized:
            return

        self._logger.info("Shutting down service container...")
        await self.redis.shutdown()
        await self.database.shutdown()
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "database": await self.database.health_check(),
            "redis": await self.redis.health_check(),
            "redis_status": self.redis.get_status(),
            "logging": asdict(get_logging_health()),
            "config": self._config_manager.get_metrics(),
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3)
                if self._init_start and self._init_end
                else None
            ),
        }

    # ========================================================================
    # Accessors
    # ========================================================================

    def _require(self, service: Optional[Any], name: str) -> Any:
        if service is None:
            raise ContainerNotInitializedError(f"{name} requested before initialize()")
        return service

    @property
    def scores(self) -> ScoreRepository:
        return self._require(self._scores, "scores")

    @property
    def daily(self) -> DailyRankingStore:
        return self._require(self._daily, "daily")

    @property
    def flags(self) -> FlagService:
        return self._require(self._flags, "flags")

    @property
    def rewards(self) -> RewardService:
        return self._require(self._rewards, "rewards")

    @property
    def profiles(self) -> ProfileService:
        return self._require(self._profiles, "profiles")

    @property
    def submission(self) -> SubmissionService:
        return self._require(self._submission, "submission")

    @property
    def leaderboard(self) -> LeaderboardService:
        return self._require(self._leaderboard, "leaderboard")

    @property
    def admin(self) -> AdminService:
        return self._require(self._admin, "admin")
