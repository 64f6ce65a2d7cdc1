"""
Database subsystem.

Provides the async SQLAlchemy engine/session service and the SQLModel base
classes for table definitions.
"""

from dodgeboard.core.database.base import IdModel, TimestampedModel, metadata, utc_now
from dodgeboard.core.database.service import (
    DatabaseInitializationError,
    DatabaseService,
)

__all__ = [
    "metadata",
    "IdModel",
    "TimestampedModel",
    "utc_now",
    "DatabaseService",
    "DatabaseInitializationError",
]
