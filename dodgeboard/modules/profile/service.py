"""
ProfileService: the identity a player last saved under their player id.

Profiles live in `player_profiles` and are mirrored into Redis under
`profile:{player_id}` for 30 days. Redis is a cache only: a cache miss or an
unreachable Redis falls through to the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from dodgeboard.core.database.base import utc_now
from dodgeboard.core.exceptions import FastStoreUnavailableError
from dodgeboard.database.models import PlayerProfile
from dodgeboard.modules.identity.sanitizer import (
    sanitize_display_name,
    sanitize_player_id,
    sanitize_tag,
)
from dodgeboard.modules.ranking.repository import as_utc
from dodgeboard.modules.shared.base_repository import dialect_insert
from dodgeboard.modules.shared.base_service import BaseService
from dodgeboard.modules.shared.constants import PROFILE_CACHE_PREFIX, PROFILE_CACHE_TTL_SECONDS
from dodgeboard.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from dodgeboard.core.config.manager import ConfigManager
    from dodgeboard.core.database.service import DatabaseService
    from dodgeboard.core.redis.service import RedisService
    from dodgeboard.modules.ranking.repository import ScoreRepository


@dataclass(frozen=True)
class ProfileView:
    player_id: str
    display_name: str
    tag: str
    updated_at: Optional[datetime]
    best_score: Optional[float] = None

    def to_cache(self) -> Dict[str, Any]:
        return {
            "player_id": self.player_id,
            "display_name": self.display_name,
            "tag": self.tag,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_cache(cls, payload: Dict[str, Any]) -> "ProfileView":
        updated_at = payload.get("updated_at")
        return cls(
            player_id=payload["player_id"],
            display_name=payload["display_name"],
            tag=payload.get("tag") or "",
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )


class ProfileService(BaseService):
    def __init__(
        self,
        database: DatabaseService,
        redis: RedisService,
        scores: ScoreRepository,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, logger)
        self._db = database
        self._redis = redis
        self._scores = scores

    def _cache_key(self, player_id: str) -> str:
        return f"{self.get_config('profile.cache_prefix', PROFILE_CACHE_PREFIX)}{player_id}"

    @staticmethod
    def _require_player_id(player_id: Any) -> str:
        clean = sanitize_player_id(player_id)
        if clean is None:
            raise ValidationError("playerId", "Player ID is required")
        return clean

    # ========================================================================
    # WRITE
    # ========================================================================

    async def save(self, player_id: Any, display_name: Any, tag: Any = None) -> ProfileView:
        """Upsert the profile, then refresh the cache (best effort)."""
        player_id = self._require_player_id(player_id)
        display_name = sanitize_display_name(display_name)
        tag = sanitize_tag(tag)
        now = utc_now()

        async with self._db.get_transaction() as session:
            insert = dialect_insert(session, PlayerProfile).values(
                player_id=player_id,
                display_name=display_name,
                tag=tag,
                updated_at=now,
            )
            await session.execute(
                insert.on_conflict_do_update(
                    index_elements=["player_id"],
                    set_={
                        "display_name": insert.excluded.display_name,
                        "tag": insert.excluded.tag,
                        "updated_at": insert.excluded.updated_at,
                    },
                )
            )

        view = ProfileView(player_id=player_id, display_name=display_name, tag=tag, updated_at=now)

        ttl = int(self.get_config("profile.cache_ttl_seconds", PROFILE_CACHE_TTL_SECONDS))
        try:
            await self._redis.set_json(self._cache_key(player_id), view.to_cache(), ttl)
        except FastStoreUnavailableError as exc:
            self.log_degraded("profile_cache_write", exc, player_id=player_id)

        self.log_operation("save_profile", player_id=player_id)
        return view

    # ========================================================================
    # READ
    # ========================================================================

    async def get(self, player_id: Any) -> Optional[ProfileView]:
        """
        Cached profile, else the stored one, with the player's best score.

        Returns None when the player id has never been saved.
        """
        player_id = self._require_player_id(player_id)
        view = await self._read_cache(player_id)

        try:
            async with self._db.get_session() as session:
                if view is None:
                    row = await session.get(PlayerProfile, player_id)
                    if row is None:
                        return None
                    view = ProfileView(
                        player_id=row.player_id,
                        display_name=row.display_name,
                        tag=row.tag or "",
                        updated_at=as_utc(row.updated_at),
                    )
                best = await self._scores.best_for_player(session, player_id)
        except (SQLAlchemyError, OSError) as exc:
            if view is None:
                raise
            self.log_degraded("profile_best_score", exc, player_id=player_id)
            best = None

        return ProfileView(
            player_id=view.player_id,
            display_name=view.display_name,
            tag=view.tag,
            updated_at=view.updated_at,
            best_score=float(best) if best is not None else None,
        )

    async def _read_cache(self, player_id: str) -> Optional[ProfileView]:
        try:
            payload = await self._redis.get_json(self._cache_key(player_id))
        except FastStoreUnavailableError as exc:
            self.log_degraded("profile_cache_read", exc, player_id=player_id)
            return None
        if not isinstance(payload, dict):
            return None
        try:
            return ProfileView.from_cache(payload)
        except (KeyError, TypeError, ValueError):
            self.log.warning("Discarding malformed profile cache entry", extra={"player_id": player_id})
            return None
