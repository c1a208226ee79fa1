from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from .interfaces import EnforcementTarget

__all__ = [
    "PunishmentTier",
    "ViolationType",
    "MessageObservation",
    "InboundMessage",
    "DetectionResult",
    "ModerationVerdict",
    "EnforcementAttempt",
    "EnforcementOutcome",
    "AuditRecord",
]


class PunishmentTier(str, Enum):
    """Ordered punishment levels, lowest first."""

    WARN = "warn"
    MUTE = "mute"
    KICK = "kick"
    BAN = "ban"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    def fallback(self) -> Optional["PunishmentTier"]:
        """Return the tier to retry with when this one fails, if any."""
        return _TIER_FALLBACK.get(self)


_TIER_RANK = {
    PunishmentTier.WARN: 0,
    PunishmentTier.MUTE: 1,
    PunishmentTier.KICK: 2,
    PunishmentTier.BAN: 3,
}

_TIER_FALLBACK = {
    PunishmentTier.BAN: PunishmentTier.KICK,
    PunishmentTier.KICK: PunishmentTier.MUTE,
}


class ViolationType(str, Enum):
    SPAM = "spam"
    DUPLICATE_MESSAGE = "duplicate_message"
    PROFANITY = "profanity"
    DISCORD_INVITE = "discord_invite"
    SUSPICIOUS_LINK = "suspicious_link"
    EXCESSIVE_CAPS = "excessive_caps"


@dataclass(frozen=True, slots=True)
class MessageObservation:
    """A single recorded message used by the time-window detectors."""

    timestamp_ms: int
    content: str
    channel_id: Optional[str] = None


@dataclass(slots=True)
class InboundMessage:
    """Transport-neutral view of a message handed to the engine."""

    tenant_id: Optional[str]
    author_id: Optional[str]
    channel_id: Optional[str]
    content: str = ""
    author_role_ids: tuple[str, ...] = ()
    author_is_admin: bool = False
    author_is_bot: bool = False
    attachment_count: int = 0
    created_at_ms: Optional[int] = None
    message_id: Optional[str] = None
    tenant_name: Optional[str] = None
    delete: Optional[Callable[[], Awaitable[bool]]] = None
    target: Optional["EnforcementTarget"] = None


@dataclass(frozen=True, slots=True)
class DetectionResult:
    violation_type: ViolationType
    reason: str


@dataclass(frozen=True, slots=True)
class ModerationVerdict:
    """Outcome of running one message through the detector pipeline."""

    violated: bool
    violation_type: Optional[ViolationType] = None
    reason: Optional[str] = None
    punishment: Optional[PunishmentTier] = None
    escalated: bool = False
    violation_count: int = 0

    @classmethod
    def clean(cls) -> "ModerationVerdict":
        return _CLEAN_VERDICT


_CLEAN_VERDICT = ModerationVerdict(violated=False)


@dataclass(frozen=True, slots=True)
class EnforcementAttempt:
    tier: PunishmentTier
    success: bool
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class EnforcementOutcome:
    """Result of applying a punishment, including every fallback step taken."""

    requested: PunishmentTier
    applied: Optional[PunishmentTier]
    success: bool
    reason: Optional[str] = None
    attempts: tuple[EnforcementAttempt, ...] = ()
    message_deleted: bool = False


@dataclass(frozen=True, slots=True)
class AuditRecord:
    timestamp: float
    tenant_id: str
    author_id: str
    channel_id: Optional[str]
    violation_type: Optional[ViolationType]
    requested_tier: Optional[PunishmentTier]
    applied_tier: Optional[PunishmentTier]
    success: bool
    attempted_tier: Optional[PunishmentTier] = None
    reason: Optional[str] = None
    failure_reason: Optional[str] = None
    content: Optional[str] = None
    log_channel_id: Optional[str] = None
    violation_count: int = 0
    escalated: bool = False
    message_deleted: bool = False
