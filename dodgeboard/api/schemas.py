from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Request(BaseModel):
    """Wire field names are camelCase; values are validated by the services."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ScoreSubmissionRequest(_Request):
    player_id: Any = Field(None, alias="playerId")
    username: Any = None
    discord: Any = None
    score: Any = None
    is_victory: Any = Field(False, alias="isVictory")


class RewardCheckRequest(_Request):
    player_id: Any = Field(None, alias="playerId")
    score: Any = None


class ProfileSaveRequest(_Request):
    player_id: Any = Field(None, alias="playerId")
    username: Any = None
    discord: Any = None


class FlagReportRequest(_Request):
    reason: Any = None


class RewardTierCreateRequest(_Request):
    code: Optional[str] = None
    threshold: Any = None
    message: Any = None
    secret_code: Any = Field(None, alias="secretCode")
    active: Any = True
    single_claim_per_player: Any = Field(True, alias="singleClaimPerPlayer")


class RewardTierUpdateRequest(_Request):
    code: Optional[str] = None
    threshold: Any = None
    message: Any = None
    secret_code: Any = Field(None, alias="secretCode")
    active: Any = None
    single_claim_per_player: Any = Field(None, alias="singleClaimPerPlayer")

    def changes(self) -> dict:
        """Only the fields the caller actually sent, keyed by model column."""
        sent = self.model_fields_set
        mapping = {
            "threshold": "threshold_value",
            "message": "message",
            "secret_code": "secret_code",
            "active": "active",
            "single_claim_per_player": "single_claim_per_player",
        }
        return {column: getattr(self, name) for name, column in mapping.items() if name in sent}
