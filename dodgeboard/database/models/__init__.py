"""
ORM models for the durable ledger. Importing this package registers every
table on `SQLModel.metadata`.
"""

from dodgeboard.database.models.flag import FlagRecord
from dodgeboard.database.models.profile import PlayerProfile
from dodgeboard.database.models.reward import RewardClaim, RewardTier
from dodgeboard.database.models.score import ScoreRecord

__all__ = [
    "ScoreRecord",
    "FlagRecord",
    "PlayerProfile",
    "RewardTier",
    "RewardClaim",
]
