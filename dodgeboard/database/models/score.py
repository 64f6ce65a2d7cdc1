"""
ScoreRecord: one row per accepted submission.

The durable ledger and source of truth for all-time ranking. Rows are never
updated except for `flagged`, and only deleted by an admin.
"""

from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field

from dodgeboard.core.database.base import TimestampedModel


class ScoreRecord(TimestampedModel, table=True):
    __tablename__ = "scores"
    __table_args__ = (
        Index("ix_scores_value", "value"),
        Index("ix_scores_player_value", "player_id", "value"),
        Index("ix_scores_name_tag_value", "display_name", "tag", "value"),
    )

    display_name: str = Field(max_length=50)
    tag: str = Field(default="", max_length=100)
    value: float
    player_id: Optional[str] = Field(default=None, max_length=50)
    request_fingerprint: Optional[str] = Field(default=None, max_length=50, index=True)
    flagged: bool = Field(default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "tag": self.tag,
            "value": self.value,
            "player_id": self.player_id,
            "request_fingerprint": self.request_fingerprint,
            "flagged": self.flagged,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return (
            f"<ScoreRecord(id={self.id}, display_name='{self.display_name}', "
            f"value={self.value}, flagged={self.flagged})>"
        )
