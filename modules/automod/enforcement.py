from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Awaitable, Callable, Optional

from .constants import MAX_BAN_DELETE_DAYS
from .interfaces import ActionResult, EnforcementTarget, Privileges
from .models import EnforcementAttempt, EnforcementOutcome, PunishmentTier
from .settings import TenantConfig
from .texts import ENFORCEMENT_TEXTS_FALLBACK, WARN_DM_FALLBACK

__all__ = ["EnforcementExecutor", "MAX_ATTEMPTS"]

_logger = logging.getLogger(__name__)

# ban -> kick -> mute
MAX_ATTEMPTS = 3


class EnforcementExecutor:
    """Applies punishments with ordered fallback to lesser tiers.

    A failed ban is retried as a kick and a failed kick as a mute; each step
    checks its own preconditions and runs under its own timeout.
    """

    def __init__(self, *, timeout: float = 10.0) -> None:
        self._timeout = timeout

    async def apply(
        self,
        config: TenantConfig,
        target: Optional[EnforcementTarget],
        tier: PunishmentTier,
        reason: str,
        *,
        delete_message: Optional[Callable[[], Awaitable[bool]]] = None,
        server_name: Optional[str] = None,
    ) -> EnforcementOutcome:
        deleted = False
        if delete_message is not None and config.punishments.for_tier(tier).delete_message:
            deleted = await self._delete(delete_message)

        attempts: list[EnforcementAttempt] = []
        current: Optional[PunishmentTier] = tier
        while current is not None and len(attempts) < MAX_ATTEMPTS:
            attempt = await self._attempt(config, target, current, reason, server_name)
            attempts.append(attempt)
            if attempt.success:
                break
            _logger.info("Failed to %s target: %s", current.value, attempt.reason)
            current = current.fallback()

        final = attempts[-1]
        return EnforcementOutcome(
            requested=tier,
            applied=final.tier if final.success else None,
            success=final.success,
            reason=final.reason,
            attempts=tuple(attempts),
            message_deleted=deleted,
        )

    async def _delete(self, delete_message: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return bool(await asyncio.wait_for(delete_message(), timeout=self._timeout))
        except asyncio.TimeoutError:
            _logger.warning("Timed out deleting offending message")
        except Exception:
            _logger.warning("Failed to delete offending message", exc_info=True)
        return False

    async def _attempt(
        self,
        config: TenantConfig,
        target: Optional[EnforcementTarget],
        tier: PunishmentTier,
        reason: str,
        server_name: Optional[str],
    ) -> EnforcementAttempt:
        texts = ENFORCEMENT_TEXTS_FALLBACK
        if not config.punishments.for_tier(tier).enabled:
            return EnforcementAttempt(tier, False, texts["tier_disabled"].format(tier=tier.value))
        if target is None:
            return EnforcementAttempt(tier, False, texts["no_target"])

        try:
            result = await asyncio.wait_for(
                self._perform(config, target, tier, reason, server_name),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            return EnforcementAttempt(
                tier, False, texts["timed_out"].format(tier=tier.value, timeout=self._timeout)
            )
        except Exception as exc:
            _logger.exception("Unexpected error applying %s", tier.value)
            detail = str(exc).strip() or exc.__class__.__name__
            return EnforcementAttempt(tier, False, texts["unexpected_error"].format(error=detail))
        if not isinstance(result, ActionResult):
            result = ActionResult(bool(result))
        return EnforcementAttempt(tier, result.success, result.reason)

    async def _perform(
        self,
        config: TenantConfig,
        target: EnforcementTarget,
        tier: PunishmentTier,
        reason: str,
        server_name: Optional[str],
    ) -> ActionResult:
        texts = ENFORCEMENT_TEXTS_FALLBACK
        punishments = config.punishments

        if tier is PunishmentTier.WARN:
            text = WARN_DM_FALLBACK.format(server=server_name or "this server", reason=reason)
            try:
                notified = await target.send_direct_message(text)
            except Exception:
                _logger.warning("Failed to send warning notification", exc_info=True)
            else:
                if not notified.success:
                    _logger.info("Warning notification not delivered: %s", notified.reason)
            return ActionResult.ok()

        privileges: Privileges = await target.privileges()

        if tier is PunishmentTier.MUTE:
            if not privileges.can_mute:
                return ActionResult.failed(texts["missing_privilege"].format(tier=tier.value))
            return await target.mute(timedelta(minutes=punishments.mute.duration), reason)

        if tier is PunishmentTier.KICK:
            if not privileges.can_kick:
                return ActionResult.failed(texts["missing_privilege"].format(tier=tier.value))
            if not privileges.outranks_target:
                return ActionResult.failed(texts["rank_too_low"])
            return await target.kick(reason)

        if not privileges.can_ban:
            return ActionResult.failed(texts["missing_privilege"].format(tier=tier.value))
        if not privileges.outranks_target:
            return ActionResult.failed(texts["rank_too_low"])
        days = max(0, min(punishments.ban.delete_message_days, MAX_BAN_DELETE_DAYS))
        return await target.ban(reason, days)
