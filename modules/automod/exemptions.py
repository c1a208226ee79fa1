from __future__ import annotations

from typing import Iterable, Optional

from .settings import ExemptionSettings

__all__ = ["is_exempt"]


def is_exempt(
    exemptions: ExemptionSettings,
    author_id: Optional[str],
    channel_id: Optional[str],
    author_role_ids: Iterable[str] = (),
    author_is_admin: bool = False,
) -> bool:
    """Return True when the author, channel or any role is immune to moderation."""
    if author_is_admin:
        return True
    if author_id is not None and author_id in exemptions.users:
        return True
    if channel_id is not None and channel_id in exemptions.channels:
        return True
    if exemptions.roles:
        exempt_roles = set(exemptions.roles)
        return any(role_id in exempt_roles for role_id in author_role_ids)
    return False
