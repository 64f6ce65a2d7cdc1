"""
Anti-cheat gate: a pure predicate over one submission.

A run that claims a full-game victory cannot be shorter than the sum of the
stage and boss-phase lengths. Partial runs are never rejected here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from dodgeboard.core.config.manager import ConfigManager
from dodgeboard.modules.shared.constants import (
    MINIMUM_COMPLETION_TIME,
    TIME_VIOLATION_REASON,
)


@dataclass(frozen=True)
class Verdict:
    accepted: bool
    should_flag: bool
    reason: Optional[str] = None


ACCEPTED = Verdict(accepted=True, should_flag=False)


class AntiCheatGate:
    def __init__(self, minimum_completion_time: Optional[float] = None) -> None:
        self._minimum_override = minimum_completion_time

    @property
    def minimum_completion_time(self) -> float:
        if self._minimum_override is not None:
            return float(self._minimum_override)
        return float(
            ConfigManager.get("anticheat.minimum_completion_time", MINIMUM_COMPLETION_TIME)
        )

    def evaluate(self, value: float, is_victory_claim: bool) -> Verdict:
        """
        >>> AntiCheatGate(180).evaluate(150, True).accepted
        False
        >>> AntiCheatGate(180).evaluate(5, False).accepted
        True
        """
        if is_victory_claim and value < self.minimum_completion_time:
            return Verdict(accepted=False, should_flag=True, reason=TIME_VIOLATION_REASON)
        return ACCEPTED
