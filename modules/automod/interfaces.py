from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .models import AuditRecord

__all__ = [
    "ActionResult",
    "Privileges",
    "EnforcementTarget",
    "ConfigStore",
    "AuditSink",
]


@dataclass(frozen=True, slots=True)
class ActionResult:
    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ActionResult":
        return cls(True)

    @classmethod
    def failed(cls, reason: str) -> "ActionResult":
        return cls(False, reason)


@dataclass(frozen=True, slots=True)
class Privileges:
    """What the enforcing principal may do, and where its roles rank."""

    can_mute: bool = False
    can_kick: bool = False
    can_ban: bool = False
    actor_rank: int = 0
    target_rank: int = 0

    @property
    def outranks_target(self) -> bool:
        return self.target_rank < self.actor_rank


@runtime_checkable
class EnforcementTarget(Protocol):
    """Author of a message, as seen by whoever enforces punishments."""

    async def privileges(self) -> Privileges: ...

    async def send_direct_message(self, text: str) -> ActionResult: ...

    async def mute(self, duration: timedelta, reason: str) -> ActionResult: ...

    async def kick(self, reason: str) -> ActionResult: ...

    async def ban(self, reason: str, delete_message_days: int) -> ActionResult: ...


@runtime_checkable
class ConfigStore(Protocol):
    async def load(self, tenant_id: str) -> Optional[Mapping[str, Any]]: ...

    async def save(self, tenant_id: str, data: Mapping[str, Any]) -> None: ...


@runtime_checkable
class AuditSink(Protocol):
    async def record(self, entry: AuditRecord) -> None: ...
