"""
Redis Circuit Breaker

Purpose
-------
Gate Redis operations so that an unreachable ranking store costs one bounded
connect attempt per cool-down window instead of one per request.

States:
- CLOSED: Normal operation, all requests pass through
- OPEN: Redis is failing, all requests fail fast
- HALF_OPEN: One trial request is in flight to test recovery

Responsibilities
----------------
- Count consecutive failures and open once the threshold is reached
- Let exactly one trial call through after the cool-down
- Close on the first successful trial, re-open on a failed one
- Report status for health summaries

Non-Responsibilities
--------------------
- Executing Redis commands (RedisService does that)
- Retrying failed calls

Configuration
-------------
- Config.REDIS_RECONNECT_COOLDOWN           : seconds OPEN before a trial
- core.redis.circuit_breaker.failure_threshold (YAML, default 1)
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from dodgeboard.core.config.config import Config
from dodgeboard.core.config.manager import ConfigManager
from dodgeboard.core.logging.logger import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class RedisCircuitBreaker:
    """
    Circuit breaker for Redis operations.

    `clock` is injectable so tests can move time without sleeping.
    """

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state: CircuitState = CircuitState.CLOSED
        self._failure_count: int = 0
        self._opened_at: Optional[float] = None
        self._last_failure_time: Optional[float] = None
        self._trial_in_flight: bool = False
        self._lock: asyncio.Lock = asyncio.Lock()
        self._clock = clock

        if failure_threshold is None:
            failure_threshold = int(
                ConfigManager.get("core.redis.circuit_breaker.failure_threshold", 1)
            )
        if timeout_seconds is None:
            timeout_seconds = float(Config.REDIS_RECONNECT_COOLDOWN)

        self._failure_threshold = max(1, failure_threshold)
        self._timeout_seconds = timeout_seconds

    # ═══════════════════════════════════════════════════════════════════════
    # STATE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    async def can_execute(self) -> bool:
        """
        Decide whether the next Redis call may proceed.

        While HALF_OPEN only the single trial call is admitted; concurrent
        callers fail fast until it reports back.
        """
        async with self._lock:
            if self._state == CircuitState.CLOSED:
                return True

            if self._state == CircuitState.OPEN:
                if self._opened_at is None:
                    return True
                if self._clock() - self._opened_at < self._timeout_seconds:
                    return False
                self._transition_to_half_open()

            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    # ═══════════════════════════════════════════════════════════════════════
    # RECORDING RESULTS
    # ═══════════════════════════════════════════════════════════════════════

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state != CircuitState.CLOSED:
                self._transition_to_closed()

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._transition_to_open()
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._failure_threshold
            ):
                self._transition_to_open()

    # ═══════════════════════════════════════════════════════════════════════
    # STATE TRANSITIONS
    # ═══════════════════════════════════════════════════════════════════════

    def _transition_to_open(self) -> None:
        old_state = self._state
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._trial_in_flight = False

        logger.warning(
            "Redis circuit breaker transitioned to OPEN",
            extra={
                "previous_state": old_state.value,
                "failure_count": self._failure_count,
                "timeout_seconds": self._timeout_seconds,
            },
        )

    def _transition_to_half_open(self) -> None:
        self._state = CircuitState.HALF_OPEN
        self._trial_in_flight = False

        logger.info(
            "Redis circuit breaker transitioned to HALF_OPEN",
            extra={"timeout_seconds": self._timeout_seconds},
        )

    def _transition_to_closed(self) -> None:
        old_state = self._state
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._trial_in_flight = False

        logger.info(
            "Redis circuit breaker transitioned to CLOSED",
            extra={"previous_state": old_state.value},
        )

    async def abandon_trial(self) -> None:
        """Release a half-open trial that ended without a store verdict."""
        async with self._lock:
            self._trial_in_flight = False

    async def reset(self) -> None:
        async with self._lock:
            self._transition_to_closed()
            self._last_failure_time = None

    # ═══════════════════════════════════════════════════════════════════════
    # STATUS
    # ═══════════════════════════════════════════════════════════════════════

    def get_status(self) -> Dict[str, Any]:
        time_until_half_open = None
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            time_until_half_open = max(
                0.0, self._timeout_seconds - (self._clock() - self._opened_at)
            )

        return {
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self._failure_threshold,
            "timeout_seconds": self._timeout_seconds,
            "last_failure_time": self._last_failure_time,
            "time_until_half_open": time_until_half_open,
        }
