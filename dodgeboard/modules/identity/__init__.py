from dodgeboard.modules.identity.sanitizer import (
    day_key,
    member_key,
    parse_member_key,
    request_fingerprint,
    sanitize_display_name,
    sanitize_player_id,
    sanitize_tag,
)

__all__ = [
    "day_key",
    "member_key",
    "parse_member_key",
    "request_fingerprint",
    "sanitize_display_name",
    "sanitize_player_id",
    "sanitize_tag",
]
