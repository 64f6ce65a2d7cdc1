"""
Validation package: stateless input validators shared by services and the
HTTP layer.
"""

from dodgeboard.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
