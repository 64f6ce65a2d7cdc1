"""
SubmissionService: the per-request score submission pipeline.

Purpose
-------
Take one submitted score through validation, the anti-cheat gate, both
rankings and the durable ledger, and report what happened.

Pipeline
--------
1. Sanitize identity and value            -> ValidationError
2. Anti-cheat gate                        -> rejection + flag, nothing written
3. Is the fingerprint flagged?            -> informational
4. Daily ranking upsert (Redis)           -> daily rank or None
5. Ledger insert (mandatory), then personal best and all-time rank
6. SubmissionResult

Failure Model
-------------
Steps are isolated, not a rollback chain. Only the ledger insert can fail the
request (ScoreLedgerWriteError). Everything else that fails is logged and
reported as None.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from dodgeboard.core.database.service import DatabaseInitializationError
from dodgeboard.core.exceptions import ScoreLedgerWriteError
from dodgeboard.core.validation.input_validator import InputValidator
from dodgeboard.modules.identity.sanitizer import (
    day_key,
    member_key,
    sanitize_display_name,
    sanitize_player_id,
    sanitize_tag,
)
from dodgeboard.modules.shared.base_service import BaseService

if TYPE_CHECKING:
    from logging import Logger

    from dodgeboard.core.config.manager import ConfigManager
    from dodgeboard.core.database.service import DatabaseService
    from dodgeboard.modules.anticheat.gate import AntiCheatGate
    from dodgeboard.modules.anticheat.service import FlagService
    from dodgeboard.modules.ranking.daily_store import DailyRankingStore
    from dodgeboard.modules.ranking.repository import ScoreRepository


@dataclass(frozen=True)
class SubmissionResult:
    accepted: bool
    flagged: bool
    daily_rank: Optional[int] = None
    all_time_rank: Optional[int] = None
    is_new_best: Optional[bool] = None
    score_id: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "dailyRank": self.daily_rank,
            "allTimeRank": self.all_time_rank,
            "isNewBest": self.is_new_best,
            "flagged": self.flagged,
            "scoreId": self.score_id,
        }


class SubmissionService(BaseService):
    def __init__(
        self,
        database: DatabaseService,
        scores: ScoreRepository,
        daily: DailyRankingStore,
        gate: AntiCheatGate,
        flags: FlagService,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, logger)
        self._db = database
        self._scores = scores
        self._daily = daily
        self._gate = gate
        self._flags = flags

    async def submit(
        self,
        *,
        display_name: Any,
        value: Any,
        fingerprint: str,
        tag: Any = None,
        player_id: Any = None,
        is_victory: Any = False,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        """
        Run one submission through the pipeline.

        Raises:
            ValidationError: Malformed name, value or flags
            ScoreLedgerWriteError: The score row could not be written
        """
        # 1. sanitize
        display_name = sanitize_display_name(display_name)
        value = InputValidator.validate_score_value(value)
        tag = sanitize_tag(tag)
        player_id = sanitize_player_id(player_id)
        is_victory = InputValidator.validate_boolean(is_victory, "isVictory")

        # 2. anti-cheat
        verdict = self._gate.evaluate(value, is_victory)
        if not verdict.accepted:
            if verdict.should_flag:
                await self._record_rejection(fingerprint, verdict.reason or "rejected", value)
            return SubmissionResult(
                accepted=False, flagged=verdict.should_flag, reason=verdict.reason
            )

        # 3. prior flags
        flagged = await self._flags.is_flagged(fingerprint)

        # 4. daily ranking
        rank = await self._daily.upsert_if_better(
            day_key(now), member_key(display_name, tag), value
        )
        daily_rank = rank + 1 if rank is not None else None

        # 5. durable ledger
        try:
            async with self._db.get_transaction() as session:
                record = await self._scores.insert(
                    session,
                    display_name=display_name,
                    tag=tag,
                    value=value,
                    player_id=player_id,
                    request_fingerprint=fingerprint,
                    flagged=flagged,
                )
                score_id = record.id
        except (SQLAlchemyError, OSError, DatabaseInitializationError) as exc:
            self.log_error("insert_score", exc, display_name=display_name, value=value)
            raise ScoreLedgerWriteError("insert_score", exc) from exc

        is_new_best, all_time_rank = await self._derive_ranking(
            score_id, display_name, player_id, value
        )

        self.log_operation(
            "submit_score",
            score_id=score_id,
            player_id=player_id,
            value=value,
            daily_rank=daily_rank,
            all_time_rank=all_time_rank,
            is_new_best=is_new_best,
            flagged=flagged,
        )

        return SubmissionResult(
            accepted=True,
            flagged=flagged,
            daily_rank=daily_rank,
            all_time_rank=all_time_rank,
            is_new_best=is_new_best,
            score_id=score_id,
        )

    # ========================================================================
    # STEPS
    # ========================================================================

    async def _record_rejection(self, fingerprint: str, reason: str, value: float) -> None:
        self.log.warning(
            f"Rejected victory claim of {value}s",
            extra={"fingerprint": fingerprint, "reason": reason, "value": value},
        )
        try:
            await self._flags.record_flag(fingerprint, reason)
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("record_rejection_flag", exc, fingerprint=fingerprint)

    async def _derive_ranking(
        self,
        score_id: int,
        display_name: str,
        player_id: Optional[str],
        value: float,
    ) -> tuple[Optional[bool], Optional[int]]:
        """Personal best and all-time rank; None for whichever lookup fails."""
        is_new_best: Optional[bool] = None
        all_time_rank: Optional[int] = None

        try:
            async with self._db.get_session() as session:
                if player_id is not None:
                    previous = await self._scores.best_for_player(
                        session, player_id, exclude_id=score_id
                    )
                else:
                    previous = await self._scores.best_for_name(
                        session, display_name, exclude_id=score_id
                    )
                is_new_best = previous is None or value > previous
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("personal_best", exc, score_id=score_id)

        try:
            async with self._db.get_session() as session:
                better = await self._scores.count_better_than(session, value)
                all_time_rank = better + 1
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("all_time_rank", exc, score_id=score_id)

        return is_new_best, all_time_rank
