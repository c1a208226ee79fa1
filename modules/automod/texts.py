from __future__ import annotations

REASON_TEXTS_FALLBACK = {
    "spam": "Sent {count} messages in {window} seconds",
    "duplicate_message": "Sent {count} duplicate messages in {window} seconds",
    "profanity": 'Inappropriate language detected: "{word}"',
    "profanity_strict": "Inappropriate language detected",
    "discord_invite": "Unauthorized Discord invite",
    "suspicious_link": "Suspicious link detected: {host}",
    "blacklisted_link": "Blocked link detected: {host}",
    "excessive_caps": "Excessive capital letters: {percentage:.1f}%",
    "default": "Auto moderation violation",
}

ENFORCEMENT_TEXTS_FALLBACK = {
    "tier_disabled": "{tier} is disabled for this server",
    "missing_privilege": "Missing permission to {tier}",
    "rank_too_low": "Target's highest role is not below the moderator's",
    "no_target": "No enforcement target available",
    "timed_out": "{tier} timed out after {timeout:.0f}s",
    "unexpected_error": "Unexpected error: {error}",
}

WARN_DM_FALLBACK = (
    "You received a warning in {server}.\n"
    "Reason: {reason}\n"
    "Please review the server rules to avoid further action."
)
