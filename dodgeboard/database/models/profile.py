"""
PlayerProfile: latest identity binding for a player id.
"""

from datetime import datetime

from sqlmodel import Field, SQLModel

from dodgeboard.core.database.base import utc_now, utc_timestamp


class PlayerProfile(SQLModel, table=True):
    __tablename__ = "player_profiles"

    player_id: str = Field(primary_key=True, max_length=50)
    display_name: str = Field(max_length=50)
    tag: str = Field(default="", max_length=100)
    updated_at: datetime = utc_timestamp(sa_column_kwargs={"onupdate": utc_now})

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "display_name": self.display_name,
            "tag": self.tag,
            "updated_at": self.updated_at,
        }
