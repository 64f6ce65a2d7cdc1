"""
RedisService: async Redis access for the fast ranking store and profile cache

Purpose
-------
Provide a resilience-aware Redis abstraction with:
- Lazily created async client with bounded connect/socket timeouts
- Circuit-breaker gate so an outage fails fast instead of blocking requests
- A single `execute()` wrapper that maps Redis/network errors to
  `FastStoreUnavailableError`
- JSON get/set helpers with latency logging
- Health and status reporting

Responsibilities
----------------
- Own one redis-py connection pool per service instance
- Never retry inside the client (`retry_on_timeout=False`, zero retries)
- Record success/failure on the circuit breaker for every call
- Track a coarse healthy/unhealthy flag for startup and health summaries

Non-Responsibilities
--------------------
- Ranking semantics (DailyRankingStore)
- Deciding whether a failure is fatal (callers decide: submission paths
  degrade, admin paths surface 503)

Architecture Notes
------------------
- Built by `ServiceContainer` and injected; no class-level client globals.
- Constructing the service never touches the network. The first `execute()`
  connects and PINGs; a failure opens the breaker for
  `REDIS_RECONNECT_COOLDOWN` seconds, then one call is let through to try
  again.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from redis.asyncio import Redis as AsyncRedis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import RedisError, ResponseError

from dodgeboard.core.config.config import Config
from dodgeboard.core.exceptions import FastStoreUnavailableError
from dodgeboard.core.logging.logger import get_logger
from dodgeboard.core.redis.circuit_breaker import RedisCircuitBreaker

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that mean "the store did not answer", as opposed to programming errors
STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


class RedisService:
    """
    Async Redis client wrapper with lazy connect and circuit breaking.

    >>> redis = RedisService("redis://localhost:6379/0")
    >>> await redis.execute("PING", lambda client: client.ping())
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        connect_timeout: Optional[float] = None,
        socket_timeout: Optional[float] = None,
        max_connections: Optional[int] = None,
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
        client: Optional[AsyncRedis] = None,
    ) -> None:
        self._url = url or Config.REDIS_URL
        self._connect_timeout = float(connect_timeout or Config.REDIS_CONNECT_TIMEOUT)
        self._socket_timeout = float(socket_timeout or Config.REDIS_SOCKET_TIMEOUT)
        self._max_connections = max_connections or Config.REDIS_MAX_CONNECTIONS
        self._breaker = circuit_breaker or RedisCircuitBreaker()
        self._client: Optional[AsyncRedis] = client
        self._init_lock = asyncio.Lock()
        self._is_healthy: bool = client is not None
        self._operations: int = 0
        self._failures: int = 0

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def url_scheme(self) -> str:
        return self._url.split("://")[0] if "://" in self._url else "unknown"

    @property
    def circuit_breaker(self) -> RedisCircuitBreaker:
        return self._breaker

    def _build_client(self) -> AsyncRedis:
        return AsyncRedis.from_url(
            self._url,
            socket_connect_timeout=self._connect_timeout,
            socket_timeout=self._socket_timeout,
            decode_responses=True,
            max_connections=self._max_connections,
            retry_on_timeout=False,
            retry=Retry(NoBackoff(), 0),
        )

    async def _ensure_client(self) -> AsyncRedis:
        if self._client is not None:
            return self._client

        async with self._init_lock:
            if self._client is not None:
                return self._client

            start_time = time.monotonic()
            client = self._build_client()
            try:
                await asyncio.wait_for(client.ping(), timeout=self._connect_timeout)
            except STORE_ERRORS:
                await client.aclose()
                raise

            self._client = client
            self._is_healthy = True
            logger.info(
                "RedisService connected",
                extra={
                    "url_scheme": self.url_scheme,
                    "connect_timeout_seconds": self._connect_timeout,
                    "socket_timeout_seconds": self._socket_timeout,
                    "max_connections": self._max_connections,
                    "connect_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            return client

    async def initialize(self) -> bool:
        """
        Try to connect once at startup.

        Returns False instead of raising; the service starts without Redis
        and reconnects later through the circuit breaker.
        """
        try:
            await self.execute("PING", lambda client: client.ping())
            return True
        except FastStoreUnavailableError as exc:
            logger.warning(
                "Redis unavailable at startup; continuing without fast ranking store",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

    async def shutdown(self) -> None:
        """Close the connection pool. Safe to call even if never connected."""
        client = self._client
        self._client = None
        self._is_healthy = False

        if client is None:
            return

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except STORE_ERRORS as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )

    # ═══════════════════════════════════════════════════════════════════════
    # EXECUTION
    # ═══════════════════════════════════════════════════════════════════════

    async def execute(
        self,
        operation_name: str,
        operation: Callable[[AsyncRedis], Awaitable[T]],
    ) -> T:
        """
        Run `operation(client)` behind the circuit breaker.

        Raises
        ------
        FastStoreUnavailableError
            If the breaker is open, Redis/network I/O fails or Redis refuses
            the command. Refusals leave the breaker closed.
        """
        if not await self._breaker.can_execute():
            raise FastStoreUnavailableError(operation_name)

        start_time = time.monotonic()
        self._operations += 1

        try:
            client = await self._ensure_client()
            result = await operation(client)

        except ResponseError as exc:
            # Redis answered; the command itself was refused (WRONGTYPE, EXECABORT)
            await self._breaker.record_success()
            logger.error(
                "Redis rejected command",
                extra={
                    "operation": operation_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise FastStoreUnavailableError(operation_name, exc) from exc

        except STORE_ERRORS as exc:
            self._failures += 1
            self._is_healthy = False
            await self._breaker.record_failure()
            logger.warning(
                "Redis operation failed",
                extra={
                    "operation": operation_name,
                    "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "circuit_state": self._breaker.state.value,
                },
            )
            raise FastStoreUnavailableError(operation_name, exc) from exc

        except Exception:
            await self._breaker.abandon_trial()
            raise

        self._is_healthy = True
        await self._breaker.record_success()
        logger.debug(
            "Redis operation",
            extra={
                "operation": operation_name,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    # ═══════════════════════════════════════════════════════════════════════
    # JSON HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_json(self, key: str) -> Optional[Any]:
        raw = await self.execute(f"GET:{key}", lambda client: client.get(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding non-JSON cache value", extra={"key": key})
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> bool:
        payload = json.dumps(value, default=str)
        result = await self.execute(
            f"SET:{key}",
            lambda client: client.set(key, payload, ex=ttl_seconds),
        )
        return bool(result)

    async def delete(self, key: str) -> int:
        return int(await self.execute(f"DEL:{key}", lambda client: client.delete(key)))

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH & STATUS
    # ═══════════════════════════════════════════════════════════════════════

    def is_available(self) -> bool:
        """Cheap, non-blocking hint: connected and breaker not open."""
        return self._client is not None and self._is_healthy and not self._breaker.is_open

    async def health_check(self) -> bool:
        """PING through the breaker; never raises."""
        try:
            pong = await self.execute("PING", lambda client: client.ping())
            return bool(pong)
        except FastStoreUnavailableError:
            return False

    def get_status(self) -> Dict[str, Any]:
        return {
            "url_scheme": self.url_scheme,
            "connected": self._client is not None,
            "healthy": self._is_healthy,
            "operations": self._operations,
            "failures": self._failures,
            "circuit_breaker": self._breaker.get_status(),
        }
