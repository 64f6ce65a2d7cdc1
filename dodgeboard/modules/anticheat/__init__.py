from dodgeboard.modules.anticheat.gate import AntiCheatGate, Verdict
from dodgeboard.modules.anticheat.service import FlagService

__all__ = ["AntiCheatGate", "FlagService", "Verdict"]
