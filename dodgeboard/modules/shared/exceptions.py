"""
Caller-facing errors raised by the services.

The HTTP layer maps these to 400 / 403 / 404 with a
``{success: false, error, error_code}`` body. Anti-cheat rejections and lost
reward races are ordinary results, never exceptions.
"""

from __future__ import annotations

from typing import Any, Optional

from dodgeboard.core.exceptions import DodgeboardError, ErrorSeverity


class DodgeboardDomainException(DodgeboardError):
    """The request itself is wrong; retrying it unchanged will not help."""

    DEFAULT_SEVERITY = ErrorSeverity.INFO


class ValidationError(DodgeboardDomainException):
    """
    A single request field failed validation.

    ``error_code`` is ``VALIDATION_<FIELD>``, e.g. ``VALIDATION_SCORE``.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        super().__init__(
            f"Validation error for {field}: {message}",
            details={"field": field, "validation_message": message},
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(DodgeboardDomainException):
    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier
        suffix = "" if identifier is None else f": {identifier}"
        super().__init__(
            f"{resource_type} not found{suffix}",
            details={"resource_type": resource_type, "identifier": identifier},
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class AuthorizationError(DodgeboardDomainException):
    """Admin action attempted with a missing or wrong admin code."""

    DEFAULT_SEVERITY = ErrorSeverity.WARNING

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(
            "Invalid admin code",
            details={"action": action},
            error_code="ADMIN_UNAUTHORIZED",
        )
