"""
ScoreRepository: queries over the durable score ledger.

All methods take an open session; callers decide the transaction scope.
Higher values rank better everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional, Sequence

from sqlalchemy import case, func, select, update

from dodgeboard.database.models import FlagRecord, ScoreRecord
from dodgeboard.modules.identity.sanitizer import utc_day_bounds
from dodgeboard.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class BoardEntry:
    """Best score of one (display_name, tag) pair."""

    display_name: str
    tag: str
    value: float
    created_at: Optional[datetime]


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything is stored in UTC."""
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ScoreRepository(BaseRepository[ScoreRecord]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(ScoreRecord, logger)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def insert(
        self,
        session: AsyncSession,
        *,
        display_name: str,
        tag: str,
        value: float,
        player_id: Optional[str],
        request_fingerprint: Optional[str],
        flagged: bool,
    ) -> ScoreRecord:
        record = ScoreRecord(
            display_name=display_name,
            tag=tag,
            value=value,
            player_id=player_id,
            request_fingerprint=request_fingerprint,
            flagged=flagged,
        )
        session.add(record)
        await session.flush()
        return record

    async def delete(self, session: AsyncSession, score_id: int) -> Optional[ScoreRecord]:
        """
        Remove one score row; returns the deleted row or None.

        Flags pointing at the row are detached first, matching ON DELETE SET
        NULL on backends that do not enforce foreign keys.
        """
        record = await self.get(session, score_id)
        if record is None:
            return None

        await session.execute(
            update(FlagRecord)
            .where(FlagRecord.associated_score_id == score_id)
            .values(associated_score_id=None)
        )
        await session.delete(record)
        await session.flush()
        return record

    async def unflag_fingerprint(self, session: AsyncSession, fingerprint: str) -> int:
        result = await session.execute(
            update(ScoreRecord)
            .where(ScoreRecord.request_fingerprint == fingerprint)
            .values(flagged=False)
        )
        return int(result.rowcount or 0)

    # =========================================================================
    # PERSONAL BESTS
    # =========================================================================

    async def best_for_player(
        self,
        session: AsyncSession,
        player_id: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[float]:
        stmt = select(func.max(ScoreRecord.value)).where(ScoreRecord.player_id == player_id)
        if exclude_id is not None:
            stmt = stmt.where(ScoreRecord.id != exclude_id)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def best_for_name(
        self,
        session: AsyncSession,
        display_name: str,
        exclude_id: Optional[int] = None,
    ) -> Optional[float]:
        stmt = select(func.max(ScoreRecord.value)).where(
            ScoreRecord.display_name == display_name
        )
        if exclude_id is not None:
            stmt = stmt.where(ScoreRecord.id != exclude_id)
        return (await session.execute(stmt)).scalar_one_or_none()

    # =========================================================================
    # LEADERBOARDS
    # =========================================================================

    async def _best_per_pair(
        self,
        session: AsyncSession,
        n: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[BoardEntry]:
        # Flagged rows never rank, same as count_better_than
        row_number = (
            func.row_number()
            .over(
                partition_by=(ScoreRecord.display_name, ScoreRecord.tag),
                order_by=(ScoreRecord.value.desc(), ScoreRecord.id.asc()),
            )
            .label("rn")
        )
        inner = select(
            ScoreRecord.id,
            ScoreRecord.display_name,
            ScoreRecord.tag,
            ScoreRecord.value,
            ScoreRecord.created_at,
            row_number,
        ).where(ScoreRecord.flagged.is_(False))
        if since is not None:
            inner = inner.where(ScoreRecord.created_at >= since)
        if until is not None:
            inner = inner.where(ScoreRecord.created_at < until)
        ranked = inner.subquery()

        stmt = (
            select(
                ranked.c.display_name,
                ranked.c.tag,
                ranked.c.value,
                ranked.c.created_at,
            )
            .where(ranked.c.rn == 1)
            .order_by(ranked.c.value.desc(), ranked.c.id.asc())
            .limit(n)
        )
        rows = (await session.execute(stmt)).all()
        return [
            BoardEntry(
                display_name=row.display_name,
                tag=row.tag or "",
                value=float(row.value),
                created_at=as_utc(row.created_at),
            )
            for row in rows
        ]

    async def top_all_time(self, session: AsyncSession, n: int) -> List[BoardEntry]:
        return await self._best_per_pair(session, n)

    async def top_today(
        self,
        session: AsyncSession,
        n: int,
        now: Optional[datetime] = None,
    ) -> List[BoardEntry]:
        start, end = utc_day_bounds(now)
        return await self._best_per_pair(session, n, since=start, until=end)

    async def count_pairs_today(
        self, session: AsyncSession, now: Optional[datetime] = None
    ) -> int:
        start, end = utc_day_bounds(now)
        pairs = (
            select(ScoreRecord.display_name, ScoreRecord.tag)
            .where(ScoreRecord.created_at >= start, ScoreRecord.created_at < end)
            .group_by(ScoreRecord.display_name, ScoreRecord.tag)
            .subquery()
        )
        result = await session.execute(select(func.count()).select_from(pairs))
        return int(result.scalar_one())

    # =========================================================================
    # RANK
    # =========================================================================

    async def count_better_than(
        self,
        session: AsyncSession,
        value: float,
        excluding_flagged: bool = True,
    ) -> int:
        """
        Distinct players holding a strictly better score.

        Rows with a player id count once per player; rows without one count
        individually.
        """
        stmt = select(
            func.count(ScoreRecord.player_id.distinct()),
            func.coalesce(
                func.sum(case((ScoreRecord.player_id.is_(None), 1), else_=0)),
                0,
            ),
        ).where(ScoreRecord.value > value)

        if excluding_flagged:
            stmt = stmt.where(ScoreRecord.flagged.is_(False))

        identified, anonymous = (await session.execute(stmt)).one()
        return int(identified or 0) + int(anonymous or 0)

    # =========================================================================
    # ADMIN / STATS
    # =========================================================================

    async def count_all(self, session: AsyncSession) -> int:
        return await self.count(session)

    async def list_top_rows(self, session: AsyncSession, limit: int) -> List[ScoreRecord]:
        return await self.find_many_where(
            session,
            order_by=[ScoreRecord.value.desc(), ScoreRecord.id.asc()],
            limit=limit,
        )

    async def rows_for_fingerprints(
        self, session: AsyncSession, fingerprints: Sequence[str]
    ) -> List[ScoreRecord]:
        if not fingerprints:
            return []
        return await self.find_many_where(
            session,
            ScoreRecord.request_fingerprint.in_(list(fingerprints)),
            order_by=[ScoreRecord.value.desc(), ScoreRecord.id.asc()],
        )
