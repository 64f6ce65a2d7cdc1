"""
RewardService: threshold reward tiers and the claim ledger.

Purpose
-------
Decide whether a score earns a reward and record the claim exactly once.
The unique constraint on reward_claims arbitrates concurrent claims; no
in-process lock is involved.

Responsibilities
----------------
- Pick the highest-threshold active tier a score qualifies for
- Record the claim with `INSERT ... ON CONFLICT DO NOTHING`
- Admin tier management (list/create/update/delete) and claim resets

Non-Responsibilities
--------------------
- Admin authorization (AdminService)
- Score persistence (SubmissionService)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import and_, not_, select

from dodgeboard.core.validation.input_validator import InputValidator
from dodgeboard.database.models import RewardClaim, RewardTier
from dodgeboard.modules.shared.base_repository import BaseRepository, dialect_insert
from dodgeboard.modules.shared.base_service import BaseService
from dodgeboard.modules.shared.constants import MAX_PLAYER_ID_LENGTH, SINGLE_CLAIM_KEY
from dodgeboard.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from dodgeboard.core.config.manager import ConfigManager
    from dodgeboard.core.database.service import DatabaseService


@dataclass(frozen=True)
class EarnedReward:
    message: str
    code: str
    threshold: float

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "threshold": self.threshold}


@dataclass(frozen=True)
class ClaimResult:
    earned: bool
    reward: Optional[EarnedReward] = None


NOT_EARNED = ClaimResult(earned=False)

_TIER_FIELDS = ("threshold_value", "message", "secret_code", "active", "single_claim_per_player")


# ============================================================================
# Repository
# ============================================================================


class RewardTierRepository(BaseRepository[RewardTier]):
    async def best_eligible(
        self, session: AsyncSession, player_id: str, value: float
    ) -> Optional[RewardTier]:
        """
        Highest-threshold active tier the value reaches, skipping single-claim
        tiers the player already holds.
        """
        claimed = select(RewardClaim.reward_id).where(RewardClaim.player_id == player_id)
        stmt = (
            select(RewardTier)
            .where(
                RewardTier.active.is_(True),
                RewardTier.threshold_value <= value,
                not_(
                    and_(
                        RewardTier.single_claim_per_player.is_(True),
                        RewardTier.id.in_(claimed),
                    )
                ),
            )
            .order_by(RewardTier.threshold_value.desc(), RewardTier.id.asc())
            .limit(1)
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def list_by_threshold(self, session: AsyncSession) -> List[RewardTier]:
        return await self.find_many_where(
            session,
            order_by=[RewardTier.threshold_value.asc(), RewardTier.id.asc()],
        )


class RewardClaimRepository(BaseRepository[RewardClaim]):
    async def try_claim(
        self,
        session: AsyncSession,
        *,
        reward_id: int,
        player_id: str,
        claim_key: str,
        score_achieved: float,
    ) -> bool:
        """Insert the claim unless it already exists; True when this call won."""
        stmt = (
            dialect_insert(session, RewardClaim)
            .values(
                reward_id=reward_id,
                player_id=player_id,
                claim_key=claim_key,
                score_achieved=score_achieved,
            )
            .on_conflict_do_nothing(index_elements=["reward_id", "player_id", "claim_key"])
        )
        result = await session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def delete_for_tier(self, session: AsyncSession, reward_id: int) -> int:
        return await self.delete_where(session, RewardClaim.reward_id == reward_id)


# ============================================================================
# RewardService
# ============================================================================


class RewardService(BaseService):
    """
    Public Methods
    --------------
    - check_and_claim() -> Claim the best tier a score earns, at most once
    - list_tiers() / create_tier() / update_tier() / delete_tier()
    - reset_claims() -> Forget every claim of one tier
    """

    def __init__(
        self,
        database: DatabaseService,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, logger)
        self._db = database
        self._tiers = RewardTierRepository(RewardTier, logger)
        self._claims = RewardClaimRepository(RewardClaim, logger)

    # ========================================================================
    # CLAIMS
    # ========================================================================

    async def check_and_claim(self, player_id: Any, value: Any) -> ClaimResult:
        """
        Claim the highest tier `value` reaches that the player can still claim.

        Selection and insert share one transaction. When a concurrent request
        inserts the same claim first, the insert affects no row and this call
        reports `earned=False` without the code.

        Raises:
            ValidationError: Missing player id or invalid score
        """
        player_id = InputValidator.validate_string(
            player_id,
            "playerId",
            max_length=self.get_config("identity.max_player_id_length", MAX_PLAYER_ID_LENGTH),
            truncate=True,
        )
        value = InputValidator.validate_score_value(value)

        async with self._db.get_transaction() as session:
            tier = await self._tiers.best_eligible(session, player_id, value)
            if tier is None:
                return NOT_EARNED

            claim_key = SINGLE_CLAIM_KEY if tier.single_claim_per_player else uuid.uuid4().hex
            won = await self._claims.try_claim(
                session,
                reward_id=tier.id,
                player_id=player_id,
                claim_key=claim_key,
                score_achieved=value,
            )

            if not won:
                self.log.info(
                    "Reward claim lost to a concurrent request",
                    extra={"player_id": player_id, "reward_id": tier.id},
                )
                return NOT_EARNED

            reward = EarnedReward(
                message=tier.message,
                code=tier.secret_code,
                threshold=tier.threshold_value,
            )

        self.log_operation(
            "reward_claimed",
            player_id=player_id,
            reward_id=tier.id,
            threshold=tier.threshold_value,
            score=value,
        )
        return ClaimResult(earned=True, reward=reward)

    async def reset_claims(self, tier_id: int) -> int:
        async with self._db.get_transaction() as session:
            tier = await self._tiers.get(session, tier_id)
            if tier is None:
                raise NotFoundError("RewardTier", tier_id)
            removed = await self._claims.delete_for_tier(session, tier_id)

        self.log_operation("reset_claims", reward_id=tier_id, claims_removed=removed)
        return removed

    # ========================================================================
    # TIER MANAGEMENT
    # ========================================================================

    async def list_tiers(self) -> List[RewardTier]:
        async with self._db.get_session() as session:
            return await self._tiers.list_by_threshold(session)

    async def create_tier(
        self,
        threshold_value: Any,
        message: Any,
        secret_code: Any,
        active: Any = True,
        single_claim_per_player: Any = True,
    ) -> RewardTier:
        fields = self._clean_tier_fields(
            {
                "threshold_value": threshold_value,
                "message": message,
                "secret_code": secret_code,
                "active": active,
                "single_claim_per_player": single_claim_per_player,
            }
        )

        async with self._db.get_transaction() as session:
            tier = self._tiers.add(session, RewardTier(**fields))
            await session.flush()

        self.log_operation(
            "create_tier",
            reward_id=tier.id,
            threshold=tier.threshold_value,
            single_claim=tier.single_claim_per_player,
        )
        return tier

    async def update_tier(self, tier_id: int, changes: Dict[str, Any]) -> RewardTier:
        unknown = set(changes) - set(_TIER_FIELDS)
        if unknown:
            raise ValidationError("reward", f"Unknown fields: {', '.join(sorted(unknown))}")
        fields = self._clean_tier_fields(changes)

        async with self._db.get_transaction() as session:
            tier = await self._tiers.get(session, tier_id)
            if tier is None:
                raise NotFoundError("RewardTier", tier_id)
            for name, field_value in fields.items():
                setattr(tier, name, field_value)
            await session.flush()

        self.log_operation("update_tier", reward_id=tier_id, fields=sorted(fields))
        return tier

    async def delete_tier(self, tier_id: int) -> None:
        async with self._db.get_transaction() as session:
            tier = await self._tiers.get(session, tier_id)
            if tier is None:
                raise NotFoundError("RewardTier", tier_id)
            # claims go first; SQLite does not enforce the cascade
            await self._claims.delete_for_tier(session, tier_id)
            await session.delete(tier)

        self.log_operation("delete_tier", reward_id=tier_id)

    # ========================================================================
    # HELPERS
    # ========================================================================

    @staticmethod
    def _clean_tier_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
        cleaned: Dict[str, Any] = {}
        if "threshold_value" in raw:
            cleaned["threshold_value"] = InputValidator.validate_score_value(
                raw["threshold_value"], field_name="threshold"
            )
        if "message" in raw:
            cleaned["message"] = InputValidator.validate_string(
                raw["message"], "message", max_length=500
            )
        if "secret_code" in raw:
            cleaned["secret_code"] = InputValidator.validate_string(
                raw["secret_code"], "code", max_length=200
            )
        if "active" in raw:
            cleaned["active"] = InputValidator.validate_boolean(raw["active"], "active")
        if "single_claim_per_player" in raw:
            cleaned["single_claim_per_player"] = InputValidator.validate_boolean(
                raw["single_claim_per_player"], "singleClaimPerPlayer"
            )
        return cleaned

