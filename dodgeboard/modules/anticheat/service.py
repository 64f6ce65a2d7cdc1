"""
FlagService: the suspicious-activity ledger.

Purpose
-------
Record and inspect flags keyed by request fingerprint. A flag never blocks a
submission; it marks the resulting score rows so they drop out of all-time
rank counting, and it surfaces the fingerprint to admins.

Responsibilities
----------------
- Append flag records (anti-cheat rejections, client reports)
- Answer "is this fingerprint flagged?" without ever failing a request
- List flagged fingerprints grouped with their flags and scores
- Clear a fingerprint: delete its flags and unflag its scores

Non-Responsibilities
--------------------
- Deciding what is suspicious (AntiCheatGate, client reports)
- Authorization (AdminService)
"""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from dodgeboard.core.validation.input_validator import InputValidator
from dodgeboard.database.models import FlagRecord
from dodgeboard.modules.ranking.repository import as_utc
from dodgeboard.modules.shared.base_service import BaseService
from dodgeboard.modules.shared.constants import ADMIN_FLAGS_LIMIT, MAX_FLAG_REASON_LENGTH

if TYPE_CHECKING:
    from logging import Logger

    from dodgeboard.core.config.manager import ConfigManager
    from dodgeboard.core.database.service import DatabaseService
    from dodgeboard.modules.ranking.repository import ScoreRepository


class FlagService(BaseService):
    def __init__(
        self,
        database: DatabaseService,
        scores: ScoreRepository,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, logger)
        self._db = database
        self._scores = scores

    def clean_reason(self, reason: Any) -> str:
        return InputValidator.validate_string(
            reason,
            "reason",
            min_length=1,
            max_length=self.get_config("identity.max_flag_reason_length", MAX_FLAG_REASON_LENGTH),
            truncate=True,
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    async def record_flag(
        self,
        fingerprint: str,
        reason: Any,
        associated_score_id: Optional[int] = None,
    ) -> FlagRecord:
        clean = self.clean_reason(reason)

        async with self._db.get_transaction() as session:
            flag = FlagRecord(
                fingerprint=fingerprint,
                reason=clean,
                associated_score_id=associated_score_id,
            )
            session.add(flag)
            await session.flush()

        self.log.warning(
            f"Flagged fingerprint {fingerprint} for: {clean}",
            extra={
                "fingerprint": fingerprint,
                "reason": clean,
                "flag_id": flag.id,
                "associated_score_id": associated_score_id,
            },
        )
        return flag

    async def clear_flags(self, fingerprint: str) -> Dict[str, int]:
        """Delete every flag for the fingerprint and unflag its scores."""
        async with self._db.get_transaction() as session:
            flags_deleted = await self._delete_flags(session, fingerprint)
            scores_unflagged = await self._scores.unflag_fingerprint(session, fingerprint)

        self.log_operation(
            "clear_flags",
            fingerprint=fingerprint,
            flags_deleted=flags_deleted,
            scores_unflagged=scores_unflagged,
        )
        return {"flags_deleted": flags_deleted, "scores_unflagged": scores_unflagged}

    @staticmethod
    async def _delete_flags(session, fingerprint: str) -> int:
        result = await session.execute(
            delete(FlagRecord).where(FlagRecord.fingerprint == fingerprint)
        )
        return int(result.rowcount or 0)

    # =========================================================================
    # READS
    # =========================================================================

    async def is_flagged(self, fingerprint: str) -> bool:
        """Informational only; a ledger failure reads as "not flagged"."""
        try:
            async with self._db.get_session() as session:
                stmt = select(FlagRecord.id).where(FlagRecord.fingerprint == fingerprint).limit(1)
                return (await session.execute(stmt)).first() is not None
        except (SQLAlchemyError, OSError) as exc:
            self.log_degraded("is_flagged", exc, fingerprint=fingerprint)
            return False

    async def list_flagged_players(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Most recent flags (capped), grouped by fingerprint, each group carrying
        every score row submitted from that fingerprint.
        """
        if limit is None:
            limit = int(self.get_config("admin.flags_limit", ADMIN_FLAGS_LIMIT))

        async with self._db.get_session() as session:
            stmt = (
                select(FlagRecord)
                .order_by(FlagRecord.created_at.desc(), FlagRecord.id.desc())
                .limit(limit)
            )
            flags = list((await session.execute(stmt)).scalars().all())

            groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
            for flag in flags:
                group = groups.setdefault(
                    flag.fingerprint,
                    {"fingerprint": flag.fingerprint, "flags": [], "scores": []},
                )
                group["flags"].append(
                    {
                        "id": flag.id,
                        "reason": flag.reason,
                        "timestamp": as_utc(flag.created_at),
                        "associated_score_id": flag.associated_score_id,
                    }
                )

            rows = await self._scores.rows_for_fingerprints(session, list(groups.keys()))

        for row in rows:
            group = groups.get(row.request_fingerprint or "")
            if group is not None:
                group["scores"].append(
                    {
                        "id": row.id,
                        "display_name": row.display_name,
                        "tag": row.tag,
                        "value": row.value,
                        "flagged": row.flagged,
                        "created_at": as_utc(row.created_at),
                    }
                )

        return list(groups.values())
