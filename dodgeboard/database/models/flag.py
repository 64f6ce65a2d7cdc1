"""
FlagRecord: append-only suspicious-activity reports keyed by request fingerprint.
"""

from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, Integer
from sqlmodel import Field

from dodgeboard.core.database.base import TimestampedModel


class FlagRecord(TimestampedModel, table=True):
    __tablename__ = "flags"
    __table_args__ = (Index("ix_flags_fingerprint_created", "fingerprint", "created_at"),)

    fingerprint: str = Field(max_length=50)
    reason: str = Field(max_length=100)
    # Survives score deletion; the reference is cleared instead
    associated_score_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("scores.id", ondelete="SET NULL"), nullable=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fingerprint": self.fingerprint,
            "reason": self.reason,
            "associated_score_id": self.associated_score_id,
            "created_at": self.created_at,
        }
