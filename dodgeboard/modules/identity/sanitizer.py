"""
Identity & sanitization helpers.

Pure functions, no state:
- display name / tag / player id normalization (trim + length cap)
- the daily-ranking member key `"{display_name}::{tag}"`, separator escaped
- the request fingerprint, a one-way digest of the network origin used only
  for flagging and audit, never as player identity
- the UTC day key for the fast ranking store
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from dodgeboard.core.config.manager import ConfigManager
from dodgeboard.core.validation.input_validator import InputValidator
from dodgeboard.modules.shared.constants import (
    ANONYMOUS_NAME,
    DAILY_KEY_PREFIX,
    FINGERPRINT_LENGTH,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_PLAYER_ID_LENGTH,
    MAX_TAG_LENGTH,
    MEMBER_KEY_SEPARATOR,
    UNKNOWN_ADDRESS,
)


def sanitize_display_name(value: object) -> str:
    """Trim and length-cap; empty or non-string raises ValidationError."""
    return InputValidator.validate_string(
        value,
        "username",
        min_length=1,
        max_length=ConfigManager.get("identity.max_display_name_length", MAX_DISPLAY_NAME_LENGTH),
        truncate=True,
    )


def sanitize_tag(value: object) -> str:
    """Optional secondary label; absent becomes ``""``."""
    tag = InputValidator.validate_optional_string(
        value,
        "discord",
        max_length=ConfigManager.get("identity.max_tag_length", MAX_TAG_LENGTH),
    )
    return tag or ""


def sanitize_player_id(value: object) -> Optional[str]:
    """Opaque caller-supplied player id; absent or blank becomes None."""
    return InputValidator.validate_optional_string(
        value,
        "playerId",
        max_length=ConfigManager.get("identity.max_player_id_length", MAX_PLAYER_ID_LENGTH),
    )


_ESCAPE = "\\"


def _escape_part(part: str) -> str:
    escaped = part.replace(_ESCAPE, _ESCAPE * 2)
    for char in sorted(set(MEMBER_KEY_SEPARATOR)):
        escaped = escaped.replace(char, _ESCAPE + char)
    return escaped


def member_key(display_name: str, tag: str) -> str:
    """
    Daily-ranking member for a (display_name, tag) pair.

    Separator characters inside either part are backslash-escaped, so
    distinct pairs never share a member.

    >>> member_key("Ann", "ann#1")
    'Ann::ann#1'
    """
    return f"{_escape_part(display_name)}{MEMBER_KEY_SEPARATOR}{_escape_part(tag)}"


def parse_member_key(key: str) -> Tuple[str, str]:
    """Inverse of member_key; splits on the first unescaped separator."""
    parts = [[], []]
    current = 0
    index = 0
    while index < len(key):
        char = key[index]
        if char == _ESCAPE and index + 1 < len(key):
            parts[current].append(key[index + 1])
            index += 2
        elif current == 0 and key.startswith(MEMBER_KEY_SEPARATOR, index):
            current = 1
            index += len(MEMBER_KEY_SEPARATOR)
        else:
            parts[current].append(char)
            index += 1

    display_name, tag = ("".join(part) for part in parts)
    return display_name or ANONYMOUS_NAME, tag


def client_address(forwarded_for: Optional[str], remote_addr: Optional[str]) -> str:
    """First hop of X-Forwarded-For, else the socket peer, else "unknown"."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if remote_addr:
        return remote_addr
    return UNKNOWN_ADDRESS


def request_fingerprint(
    forwarded_for: Optional[str] = None,
    remote_addr: Optional[str] = None,
) -> str:
    """
    Non-reversible, truncated digest of the request's network origin.

    >>> len(request_fingerprint(None, "10.0.0.1"))
    20
    """
    address = client_address(forwarded_for, remote_addr)
    length = int(ConfigManager.get("identity.fingerprint_length", FINGERPRINT_LENGTH))
    return hashlib.sha256(address.encode("utf-8")).hexdigest()[:length]


def day_key(now: Optional[datetime] = None) -> str:
    """
    Fast-store key for the UTC calendar day containing `now`.

    >>> day_key(datetime(2024, 3, 9, 23, 59, tzinfo=timezone.utc))
    'leaderboard:daily:2024-03-09'
    """
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    prefix = ConfigManager.get("leaderboard.daily_key_prefix", DAILY_KEY_PREFIX)
    return f"{prefix}{moment.astimezone(timezone.utc).strftime('%Y-%m-%d')}"


def utc_day_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """[start, end) of the UTC day containing `now`."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    start = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
