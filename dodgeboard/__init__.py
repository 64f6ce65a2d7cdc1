"""
Dodgeboard: score submission, daily/all-time leaderboards and reward tiers
for Rhythm Dodger.
"""

__version__ = "1.0.0"
