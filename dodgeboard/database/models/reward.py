"""
Reward tiers and the claim ledger that arbitrates them.

RewardClaim is the idempotency guard for reward delivery: the unique
constraint on (reward_id, player_id, claim_key) lets `INSERT ... ON CONFLICT
DO NOTHING` decide the winner of concurrent claims at the database level.

- Single-claim tiers always use claim_key "single", so a player can hold at
  most one claim per tier.
- Unlimited tiers use a fresh random claim_key per claim, which keeps every
  delivery as an audit row.
"""

from datetime import datetime

from sqlalchemy import Column, ForeignKey, Index, Integer, UniqueConstraint
from sqlmodel import Field

from dodgeboard.core.database.base import IdModel, TimestampedModel, utc_timestamp


class RewardTier(TimestampedModel, table=True):
    __tablename__ = "reward_tiers"
    __table_args__ = (Index("ix_reward_tiers_active_threshold", "active", "threshold_value"),)

    threshold_value: float
    message: str = Field(max_length=500)
    secret_code: str = Field(max_length=200)
    active: bool = Field(default=True)
    single_claim_per_player: bool = Field(default=True)

    def to_dict(self, include_code: bool = True) -> dict:
        data = {
            "id": self.id,
            "threshold_value": self.threshold_value,
            "message": self.message,
            "active": self.active,
            "single_claim_per_player": self.single_claim_per_player,
            "created_at": self.created_at,
        }
        if include_code:
            data["secret_code"] = self.secret_code
        return data

    def __repr__(self) -> str:
        return (
            f"<RewardTier(id={self.id}, threshold={self.threshold_value}, "
            f"active={self.active}, single_claim={self.single_claim_per_player})>"
        )


class RewardClaim(IdModel, table=True):
    __tablename__ = "reward_claims"
    __table_args__ = (
        UniqueConstraint(
            "reward_id",
            "player_id",
            "claim_key",
            name="uq_reward_claims_reward_player_key",
        ),
        Index("ix_reward_claims_player", "player_id", "claimed_at"),
    )

    reward_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("reward_tiers.id", ondelete="CASCADE"), nullable=False
        )
    )
    player_id: str = Field(max_length=50)
    claim_key: str = Field(max_length=64)
    score_achieved: float
    claimed_at: datetime = utc_timestamp()

    def __repr__(self) -> str:
        return (
            f"<RewardClaim(reward_id={self.reward_id}, player_id='{self.player_id}', "
            f"claim_key='{self.claim_key}')>"
        )
