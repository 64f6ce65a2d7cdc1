"""
Shared domain building blocks: base service/repository, domain exceptions
and constants.
"""

from dodgeboard.modules.shared.base_repository import BaseRepository, dialect_insert
from dodgeboard.modules.shared.base_service import BaseService
from dodgeboard.modules.shared.exceptions import (
    AuthorizationError,
    DodgeboardDomainException,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "BaseRepository",
    "BaseService",
    "dialect_insert",
    "DodgeboardDomainException",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
]
