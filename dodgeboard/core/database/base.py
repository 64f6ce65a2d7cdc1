"""
SQLModel base classes shared by every Dodgeboard table.

All tables register on `SQLModel.metadata`, which carries a naming
convention so constraints and indexes get stable names on every dialect.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

SQLModel.metadata.naming_convention = NAMING_CONVENTION

metadata = SQLModel.metadata


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp(**kwargs) -> datetime:
    """Timezone-aware timestamp column defaulting to now (UTC)."""
    return Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
        **kwargs,
    )


class IdModel(SQLModel):
    id: Optional[int] = Field(default=None, primary_key=True)


class TimestampedModel(IdModel):
    created_at: datetime = utc_timestamp(index=True)
