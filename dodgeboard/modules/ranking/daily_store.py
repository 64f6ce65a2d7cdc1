"""
DailyRankingStore: today's best-per-player ranking in a Redis sorted set.

Purpose
-------
Best-effort, low-latency ranking of the current UTC day's scores. One sorted
set per day (`leaderboard:daily:YYYY-MM-DD`), member `"{name}::{tag}"`,
score = best value seen today.

Responsibilities
----------------
- Keep each member at its maximum value atomically (`ZADD GT` inside MULTI)
- Refresh the 24h expiry on every write, changed or not
- Report "unknown" (None) instead of raising when Redis is unavailable

Non-Responsibilities
--------------------
- Connection management and circuit breaking (RedisService)
- The durable all-time ledger (ScoreRepository)

Architecture Notes
------------------
`ZADD key GT score member` only replaces an existing score when the new one
is greater and always inserts absent members, so the read-compare-write of a
naive implementation collapses into one server-side step. `EXPIRE` and
`ZREVRANK` ride in the same MULTI/EXEC so the rank reflects this write.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from dodgeboard.core.config.manager import ConfigManager
from dodgeboard.core.exceptions import FastStoreUnavailableError
from dodgeboard.core.logging.logger import get_logger
from dodgeboard.modules.shared.constants import DAILY_TTL_SECONDS

if TYPE_CHECKING:
    from dodgeboard.core.redis.service import RedisService

logger = get_logger(__name__)


class DailyRankingStore:
    def __init__(self, redis: RedisService) -> None:
        self._redis = redis

    @property
    def ttl_seconds(self) -> int:
        return int(ConfigManager.get("leaderboard.daily_ttl_seconds", DAILY_TTL_SECONDS))

    def _log_unavailable(self, operation: str, day_key: str, exc: FastStoreUnavailableError) -> None:
        logger.warning(
            "Daily ranking store unavailable",
            extra={
                "operation": operation,
                "day_key": day_key,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    # ═══════════════════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════════════════

    async def upsert_if_better(
        self, day_key: str, member_key: str, value: float
    ) -> Optional[int]:
        """
        Keep the member's best value for the day and return its 0-based
        best-first rank, or None if Redis is unreachable.
        """
        ttl = self.ttl_seconds

        async def _upsert(client):
            pipe = client.pipeline(transaction=True)
            pipe.zadd(day_key, {member_key: value}, gt=True)
            pipe.expire(day_key, ttl)
            pipe.zrevrank(day_key, member_key)
            return await pipe.execute()

        try:
            results = await self._redis.execute("ZADD_GT", _upsert)
        except FastStoreUnavailableError as exc:
            self._log_unavailable("upsert_if_better", day_key, exc)
            return None

        rank = results[-1]
        return int(rank) if rank is not None else None

    async def remove(self, day_key: str, member_key: str) -> Optional[bool]:
        try:
            removed = await self._redis.execute(
                "ZREM", lambda client: client.zrem(day_key, member_key)
            )
        except FastStoreUnavailableError as exc:
            self._log_unavailable("remove", day_key, exc)
            return None
        return bool(removed)

    async def clear(self, day_key: str) -> bool:
        """
        Delete the whole day.

        Raises FastStoreUnavailableError: an admin clearing the board must
        learn that nothing happened.
        """
        deleted = await self._redis.execute("DEL", lambda client: client.delete(day_key))
        logger.info("Daily ranking cleared", extra={"day_key": day_key, "existed": bool(deleted)})
        return bool(deleted)

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════

    async def top_n(self, day_key: str, n: int) -> Optional[List[Tuple[str, float]]]:
        if n <= 0:
            return []
        try:
            entries = await self._redis.execute(
                "ZREVRANGE",
                lambda client: client.zrevrange(day_key, 0, n - 1, withscores=True),
            )
        except FastStoreUnavailableError as exc:
            self._log_unavailable("top_n", day_key, exc)
            return None
        return [(member, float(score)) for member, score in entries]

    async def cardinality(self, day_key: str) -> Optional[int]:
        try:
            count = await self._redis.execute("ZCARD", lambda client: client.zcard(day_key))
        except FastStoreUnavailableError as exc:
            self._log_unavailable("cardinality", day_key, exc)
            return None
        return int(count)
