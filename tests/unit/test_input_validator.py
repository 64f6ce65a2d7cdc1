"""
Unit tests for InputValidator.
"""

import math

import pytest

from dodgeboard.core.validation import InputValidator
from dodgeboard.modules.shared.exceptions import ValidationError


class TestScoreValue:
    @pytest.mark.parametrize("value, expected", [(0, 0.0), (190, 190.0), (12.75, 12.75)])
    def test_accepts_non_negative_numbers(self, value, expected):
        assert InputValidator.validate_score_value(value) == expected

    @pytest.mark.parametrize("value", [None, "190", True, False, [190], -1, -0.01])
    def test_rejects_invalid_scores(self, value):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_score_value(value)
        assert exc_info.value.field == "score"

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValidationError):
            InputValidator.validate_score_value(value)


class TestIntegers:
    def test_accepts_digit_strings(self):
        assert InputValidator.validate_integer("42", "limit") == 42

    def test_rejects_fractional_floats_and_bools(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(1.5, "limit")
        with pytest.raises(ValidationError):
            InputValidator.validate_integer(True, "limit")

    def test_positive_integer_bounds(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_positive_integer(0, "limit")
        with pytest.raises(ValidationError):
            InputValidator.validate_positive_integer(11, "limit", max_value=10)


class TestStrings:
    def test_strip_and_truncate(self):
        assert InputValidator.validate_string("  abcdef ", "name", max_length=3, truncate=True) == "abc"

    def test_too_long_without_truncate(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_string("abcdef", "name", max_length=3)

    def test_blank_is_missing(self):
        with pytest.raises(ValidationError) as exc_info:
            InputValidator.validate_string("   ", "reason")
        assert exc_info.value.validation_message == "Value is required"

    def test_optional_string(self):
        assert InputValidator.validate_optional_string(None, "tag") is None
        assert InputValidator.validate_optional_string("  ", "tag") is None
        assert InputValidator.validate_optional_string(" x ", "tag") == "x"
        with pytest.raises(ValidationError):
            InputValidator.validate_optional_string(5, "tag")


class TestBooleans:
    def test_none_is_false(self):
        assert InputValidator.validate_boolean(None, "isVictory") is False

    def test_rejects_truthy_non_bools(self):
        with pytest.raises(ValidationError):
            InputValidator.validate_boolean("true", "isVictory")
        with pytest.raises(ValidationError):
            InputValidator.validate_boolean(1, "isVictory")
