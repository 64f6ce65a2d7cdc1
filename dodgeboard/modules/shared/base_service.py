"""
Base Service Foundation

Purpose
-------
Provides the foundational class for all domain services. Services implement
business logic, open transactions through DatabaseService, enforce rules and
raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Common validation helpers

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Build HTTP responses

Usage
-----
    class FlagService(BaseService):
        def __init__(self, database, repository, config_manager, logger):
            super().__init__(config_manager, logger)
            self._db = database
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from dodgeboard.core.exceptions import ConfigurationError
from dodgeboard.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from dodgeboard.core.config.manager import ConfigManager


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Tunable configuration source (class or instance with `get`)
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: type[ConfigManager] | ConfigManager,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Safely retrieve configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: BaseException,
        **context: Any,
    ) -> None:
        """Log a service error with full context."""
        self.log.error(
            f"Service error during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error": str(error),
                "error_type": type(error).__name__,
                **context,
            },
        )

    def log_degraded(
        self,
        operation: str,
        error: BaseException,
        **context: Any,
    ) -> None:
        """Log a best-effort step that failed without failing the request."""
        self.log.warning(
            f"Degraded during {operation}: {str(error)}",
            extra={
                "operation": operation,
                "error": str(error),
                "error_type": type(error).__name__,
                **context,
            },
        )

    def validate_positive_int(self, value: int, name: str) -> None:
        """
        Validate that a value is a positive integer.

        Raises:
            ValidationError: If value is not positive
        """
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(
                name, f"{name} must be a positive integer, got {value}"
            )
