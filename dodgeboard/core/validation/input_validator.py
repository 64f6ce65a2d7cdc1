"""
Input Validation Layer

Purpose
-------
Provide a centralized validation layer for caller-supplied inputs: score
values, display names, tags, identifiers and limits. Enforces type safety,
bounds checking and length caps before anything reaches a store.

Responsibilities
----------------
- Validate and convert inputs to correct types
- Enforce bounds checking for numerical inputs
- Trim and length-cap (or reject) string inputs
- Raise ValidationError with caller-facing messages

Non-Responsibilities
--------------------
- Business rules such as the anti-cheat time floor (AntiCheatGate)
- Persistence or transactions

Observability
-------------
Every validation failure is logged at debug level with field_name, raw_value
(repr) and reason.
"""

from __future__ import annotations

import math
from typing import Any, NoReturn, Optional

from dodgeboard.core.logging.logger import get_logger
from dodgeboard.modules.shared.exceptions import ValidationError

logger = get_logger(__name__)


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError; every failure goes through here."""
    logger.debug(
        "Input validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class InputValidator:
    """
    Stateless input validation.

    All methods return the validated (and normalized) value on success and
    raise ValidationError on failure.
    """

    # =========================================================================
    # NUMERIC VALIDATION
    # =========================================================================

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> int:
        """
        Validate and convert value to integer with optional bounds checking.

        Accepts ints and digit strings; rejects bools and floats with a
        fractional part.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be a whole number")

        if isinstance(value, float):
            if not value.is_integer():
                _raise_validation_error(field_name, value, "Must be a whole number")
            int_value = int(value)
        else:
            try:
                int_value = int(value)
            except (ValueError, TypeError):
                _raise_validation_error(
                    field_name,
                    value,
                    f"Must be a whole number, got '{value}'",
                )

        if min_value is not None and int_value < min_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Must be at least {min_value}, got {int_value}",
            )

        if max_value is not None and int_value > max_value:
            _raise_validation_error(
                field_name,
                int_value,
                f"Cannot exceed {max_value}, got {int_value}",
            )

        return int_value

    @staticmethod
    def validate_positive_integer(
        value: Any,
        field_name: str,
        max_value: Optional[int] = None,
    ) -> int:
        """Validate that value is a strictly positive integer (>= 1)."""
        return InputValidator.validate_integer(
            value=value,
            field_name=field_name,
            min_value=1,
            max_value=max_value,
        )

    @staticmethod
    def validate_score_value(value: Any, field_name: str = "score") -> float:
        """
        Validate a score: a real number, finite and non-negative.

        Strings are rejected even when numeric; the client always sends a
        JSON number.
        """
        if value is None:
            _raise_validation_error(field_name, value, "Valid score is required")

        if isinstance(value, bool) or not isinstance(value, (int, float)):
            _raise_validation_error(field_name, value, "Valid score is required")

        float_value = float(value)
        if not math.isfinite(float_value):
            _raise_validation_error(field_name, value, "Score must be finite")

        if float_value < 0:
            _raise_validation_error(field_name, value, "Score cannot be negative")

        return float_value

    # =========================================================================
    # STRING VALIDATION
    # =========================================================================

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        min_length: Optional[int] = 1,
        max_length: Optional[int] = None,
        truncate: bool = False,
    ) -> str:
        """
        Validate a required string; surrounding whitespace is stripped.

        Args:
            value: Input value; must already be a str
            field_name: Name of field for error messages
            min_length: Minimum length after stripping
            max_length: Maximum length after stripping
            truncate: Cut to `max_length` instead of rejecting longer input
        """
        if value is None:
            _raise_validation_error(field_name, value, "Value is required")

        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string")

        str_value = value.strip()

        if min_length is not None and len(str_value) < min_length:
            if min_length == 1:
                _raise_validation_error(field_name, value, "Value is required")
            _raise_validation_error(
                field_name,
                str_value,
                f"Must be at least {min_length} characters",
            )

        if max_length is not None and len(str_value) > max_length:
            if truncate:
                str_value = str_value[:max_length]
            else:
                _raise_validation_error(
                    field_name,
                    str_value,
                    f"Cannot exceed {max_length} characters",
                )

        return str_value

    @staticmethod
    def validate_optional_string(
        value: Any,
        field_name: str,
        max_length: Optional[int] = None,
        truncate: bool = True,
    ) -> Optional[str]:
        """
        Validate an optional string.

        Returns None for None or whitespace-only input.
        """
        if value is None:
            return None

        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "Must be a string")

        if not value.strip():
            return None

        return InputValidator.validate_string(
            value,
            field_name,
            min_length=None,
            max_length=max_length,
            truncate=truncate,
        )

    @staticmethod
    def validate_boolean(value: Any, field_name: str) -> bool:
        if value is None:
            return False
        if not isinstance(value, bool):
            _raise_validation_error(field_name, value, "Must be true or false")
        return value
