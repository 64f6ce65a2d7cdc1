"""
LeaderboardService: read side of both rankings.

- Daily board: Redis sorted set first, the ledger's `top_today` when Redis
  cannot answer.
- All-time board: the ledger, best score per (display_name, tag) pair.
- Stats and the per-name best score used by the game client.

Reads never fail the request: a broken store yields an empty board or None.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from dodgeboard.modules.identity.sanitizer import day_key, parse_member_key
from dodgeboard.modules.shared.base_service import BaseService
from dodgeboard.modules.shared.constants import LEADERBOARD_TOP_N

if TYPE_CHECKING:
    from logging import Logger

    from dodgeboard.core.config.manager import ConfigManager
    from dodgeboard.core.database.service import DatabaseService
    from dodgeboard.modules.ranking.daily_store import DailyRankingStore
    from dodgeboard.modules.ranking.repository import BoardEntry, ScoreRepository


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    display_name: str
    tag: str
    value: float
    date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "username": self.display_name,
            "discord": self.tag,
            "score": self.value,
            "date": self.date.isoformat() if self.date else None,
        }


def _rank_board(entries: List[BoardEntry]) -> List[RankedEntry]:
    return [
        RankedEntry(
            rank=index,
            display_name=entry.display_name,
            tag=entry.tag,
            value=entry.value,
            date=entry.created_at,
        )
        for index, entry in enumerate(entries, start=1)
    ]


class LeaderboardService(BaseService):
    def __init__(
        self,
        database: DatabaseService,
        scores: ScoreRepository,
        daily: DailyRankingStore,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, logger)
        self._db = database
        self._scores = scores
        self._daily = daily

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return int(self.get_config("leaderboard.top_n", LEADERBOARD_TOP_N))
        self.validate_positive_int(limit, "limit")
        return limit

    # ========================================================================
    # BOARDS
    # ========================================================================

    async def daily(
        self, limit: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[RankedEntry]:
        n = self._limit(limit)
        members = await self._daily.top_n(day_key(now), n)

        if members is not None:
            ranked = []
            for index, (member, value) in enumerate(members, start=1):
                display_name, tag = parse_member_key(member)
                ranked.append(
                    RankedEntry(rank=index, display_name=display_name, tag=tag, value=value)
                )
            return ranked

        self.log.info("Daily board served from the score ledger", extra={"limit": n})
        try:
            async with self._db.get_session() as session:
                entries = await self._scores.top_today(session, n, now=now)
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("daily_fallback", exc)
            return []
        return _rank_board(entries)

    async def all_time(self, limit: Optional[int] = None) -> List[RankedEntry]:
        n = self._limit(limit)
        try:
            async with self._db.get_session() as session:
                entries = await self._scores.top_all_time(session, n)
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("all_time", exc)
            return []
        return _rank_board(entries)

    # ========================================================================
    # STATS
    # ========================================================================

    async def stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Distinct players on today's board and total games ever recorded."""
        daily_players = await self._daily.cardinality(day_key(now))
        total_games = 0

        try:
            async with self._db.get_session() as session:
                total_games = await self._scores.count_all(session)
                if daily_players is None:
                    daily_players = await self._scores.count_pairs_today(session, now=now)
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("stats", exc)

        return {"daily_players": daily_players or 0, "total_games": total_games}

    async def best_score(self, display_name: Optional[str]) -> Optional[float]:
        if not display_name or not display_name.strip():
            return None
        try:
            async with self._db.get_session() as session:
                best = await self._scores.best_for_name(session, display_name.strip())
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("best_score", exc)
            return None
        return float(best) if best is not None else None
