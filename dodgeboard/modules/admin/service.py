"""
AdminService: shared-secret gated maintenance operations.

Purpose
-------
Everything an operator does by hand: inspect and delete scores, wipe the
daily board, review and clear flags, and manage reward tiers.

Notes
-----
- The admin code is compared in constant time. An unset code rejects every
  attempt.
- Deleting a score also drops its (name, tag) pair from today's Redis board,
  best effort. Clearing the daily board is not best effort: Redis being down
  surfaces as FastStoreUnavailableError.
"""

from __future__ import annotations

import hmac
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from dodgeboard.core.config.config import Config
from dodgeboard.modules.identity.sanitizer import day_key, member_key
from dodgeboard.modules.ranking.repository import as_utc
from dodgeboard.modules.shared.base_service import BaseService
from dodgeboard.modules.shared.constants import ADMIN_SCORES_LIMIT
from dodgeboard.modules.shared.exceptions import AuthorizationError, NotFoundError

if TYPE_CHECKING:
    from logging import Logger

    from dodgeboard.core.config.manager import ConfigManager
    from dodgeboard.core.database.service import DatabaseService
    from dodgeboard.database.models import RewardTier
    from dodgeboard.modules.anticheat.service import FlagService
    from dodgeboard.modules.ranking.daily_store import DailyRankingStore
    from dodgeboard.modules.ranking.repository import ScoreRepository
    from dodgeboard.modules.rewards.service import RewardService


class AdminService(BaseService):
    def __init__(
        self,
        database: DatabaseService,
        scores: ScoreRepository,
        daily: DailyRankingStore,
        flags: FlagService,
        rewards: RewardService,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
        admin_code: Optional[str] = None,
    ) -> None:
        super().__init__(config_manager, logger)
        self._db = database
        self._scores = scores
        self._daily = daily
        self._flags = flags
        self._rewards = rewards
        self._admin_code = admin_code

    # ========================================================================
    # AUTHORIZATION
    # ========================================================================

    def validate(self, code: Optional[str]) -> bool:
        expected = self._admin_code if self._admin_code is not None else Config.ADMIN_CODE
        if not expected or not isinstance(code, str) or not code:
            return False
        return hmac.compare_digest(code.encode("utf-8"), expected.encode("utf-8"))

    def verify(self, code: Optional[str], action: str) -> None:
        """
        Raises:
            AuthorizationError: Missing or wrong admin code
        """
        if not self.validate(code):
            self.log.warning("Rejected admin request", extra={"action": action})
            raise AuthorizationError(action)

    # ========================================================================
    # SCORES
    # ========================================================================

    async def list_scores(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        if limit is None:
            limit = int(self.get_config("admin.scores_limit", ADMIN_SCORES_LIMIT))
        self.validate_positive_int(limit, "limit")

        async with self._db.get_session() as session:
            rows = await self._scores.list_top_rows(session, limit)

        return [
            {
                "id": row.id,
                "username": row.display_name,
                "discord": row.tag,
                "score": row.value,
                "player_id": row.player_id,
                "fingerprint": row.request_fingerprint,
                "flagged": row.flagged,
                "created_at": as_utc(row.created_at),
            }
            for row in rows
        ]

    async def delete_score(self, score_id: int, now: Optional[datetime] = None) -> None:
        """
        Raises:
            NotFoundError: No score with this id
        """
        async with self._db.get_transaction() as session:
            record = await self._scores.delete(session, score_id)
            if record is None:
                raise NotFoundError("Score", score_id)
            display_name, tag = record.display_name, record.tag or ""

        removed = await self._daily.remove(day_key(now), member_key(display_name, tag))
        self.log_operation(
            "delete_score",
            score_id=score_id,
            display_name=display_name,
            removed_from_daily=removed,
        )

    async def clear_daily(self, now: Optional[datetime] = None) -> bool:
        existed = await self._daily.clear(day_key(now))
        self.log_operation("clear_daily", existed=existed)
        return existed

    # ========================================================================
    # FLAGS
    # ========================================================================

    async def list_flags(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._flags.list_flagged_players(limit)

    async def clear_flags(self, fingerprint: str) -> Dict[str, int]:
        return await self._flags.clear_flags(fingerprint)

    # ========================================================================
    # REWARD TIERS
    # ========================================================================

    async def list_tiers(self) -> List[RewardTier]:
        return await self._rewards.list_tiers()

    async def create_tier(self, **fields: Any) -> RewardTier:
        return await self._rewards.create_tier(**fields)

    async def update_tier(self, tier_id: int, changes: Dict[str, Any]) -> RewardTier:
        return await self._rewards.update_tier(tier_id, changes)

    async def delete_tier(self, tier_id: int) -> None:
        await self._rewards.delete_tier(tier_id)

    async def reset_claims(self, tier_id: int) -> int:
        return await self._rewards.reset_claims(tier_id)
