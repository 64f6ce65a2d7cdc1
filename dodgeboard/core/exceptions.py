"""
Error hierarchy shared by every Dodgeboard layer.

`DodgeboardError` carries a human-readable `message`, a stable `error_code`
for clients, structured `details` for logs and an `ErrorSeverity` that the
HTTP layer logs at. Infrastructure failures (store outages, ledger writes,
bad configuration) derive from `DodgeboardInfrastructureException` here;
caller mistakes live in `dodgeboard.modules.shared.exceptions`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"  # caller mistakes
    WARNING = "warning"  # handled degradation
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return logging.getLevelName(self.name)


class DodgeboardError(Exception):
    """Base for all errors raised on purpose by Dodgeboard code."""

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.severity = severity or self.DEFAULT_SEVERITY
        self.is_retryable = self.DEFAULT_RETRYABLE if is_retryable is None else is_retryable
        self.error_code = error_code or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        if not self.details:
            return f"[{self.error_code}] {self.message}"
        return f"[{self.error_code}] {self.message} | Details: {self.details}"


class DodgeboardInfrastructureException(DodgeboardError):
    """A backing store or the process configuration failed; not the caller's fault."""


class ConfigurationError(DodgeboardInfrastructureException):
    """A required tunable is missing from the YAML config or has the wrong shape."""

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"{config_key}: {message}",
            details={"config_key": config_key, "problem": message},
            error_code="CONFIG_ERROR",
        )


class FastStoreUnavailableError(DodgeboardInfrastructureException):
    """
    Raised when the Redis ranking store cannot serve an operation.

    Submission paths catch this and degrade to "unknown"; admin paths let it
    surface as HTTP 503.

    Args:
        operation: Description of the Redis operation that failed
        original_error: The underlying exception, if any (None when the
            circuit breaker refused the call without trying)
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(
        self,
        operation: str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        reason = str(original_error) if original_error else "store unavailable"
        super().__init__(
            f"Fast ranking store unavailable during {operation}: {reason}",
            details={
                "operation": operation,
                "error": reason,
                "error_type": (
                    type(original_error).__name__ if original_error else None
                ),
            },
            error_code="FAST_STORE_UNAVAILABLE",
        )


class ScoreLedgerWriteError(DodgeboardInfrastructureException):
    """
    Raised when the durable score ledger rejects a write.

    A score that is not durably recorded is a failed submission.

    Args:
        operation: Description of the write that failed
        original_error: The underlying database exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, original_error: BaseException) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Score ledger write failed during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="SCORE_LEDGER_WRITE_FAILED",
        )

