"""
Dodgeboard Domain Constants

Built-in fallbacks for gameplay and identity limits. Tunable values are read
through ConfigManager first (see config/dodgeboard.yaml); these are used when
the YAML key is absent.
"""

from __future__ import annotations

from typing import Final

# ============================================================================
# ANTI-CHEAT
# ============================================================================

# 60s + 60s stages, 30s + 30s boss phases
MINIMUM_COMPLETION_TIME: Final[float] = 180.0
TIME_VIOLATION_REASON: Final[str] = "time_violation"

# ============================================================================
# IDENTITY LIMITS
# ============================================================================

MAX_DISPLAY_NAME_LENGTH: Final[int] = 50
MAX_TAG_LENGTH: Final[int] = 100
MAX_PLAYER_ID_LENGTH: Final[int] = 50
MAX_FLAG_REASON_LENGTH: Final[int] = 100
FINGERPRINT_LENGTH: Final[int] = 20

MEMBER_KEY_SEPARATOR: Final[str] = "::"
ANONYMOUS_NAME: Final[str] = "Anonymous"
UNKNOWN_ADDRESS: Final[str] = "unknown"

# ============================================================================
# LEADERBOARDS
# ============================================================================

DAILY_KEY_PREFIX: Final[str] = "leaderboard:daily:"
DAILY_TTL_SECONDS: Final[int] = 86_400
LEADERBOARD_TOP_N: Final[int] = 40

# ============================================================================
# PROFILES / ADMIN
# ============================================================================

PROFILE_CACHE_PREFIX: Final[str] = "profile:"
PROFILE_CACHE_TTL_SECONDS: Final[int] = 30 * 24 * 60 * 60
ADMIN_SCORES_LIMIT: Final[int] = 100
ADMIN_FLAGS_LIMIT: Final[int] = 200

SINGLE_CLAIM_KEY: Final[str] = "single"
