from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from modules.core.config import EngineConfig

from .audit import AuditEmitter
from .config_service import ConfigurationResolver, is_valid_tenant_id
from .detectors import DetectionContext, DetectorPipeline, normalize_content
from .enforcement import EnforcementExecutor
from .errors import EngineClosedError
from .escalation import EscalationResolver
from .exemptions import is_exempt
from .history import AuthorLockRegistry, HistoryStore, RetentionSweeper, SweepReport
from .interfaces import AuditSink, ConfigStore
from .models import (
    DetectionResult,
    EnforcementOutcome,
    InboundMessage,
    MessageObservation,
    ModerationVerdict,
)
from .settings import TenantConfig
from .texts import REASON_TEXTS_FALLBACK

__all__ = ["AutoModerationEngine", "Stage"]

_logger = logging.getLogger(__name__)


class Stage(str, Enum):
    RECEIVED = "received"
    EXEMPT_CHECK = "exempt-check"
    RECORDED = "recorded"
    DETECTING = "detecting"
    ESCALATING = "escalating"
    ENFORCING = "enforcing"
    AUDITED = "audited"
    DONE = "done"


class AutoModerationEngine:
    """Runs inbound messages through detection, escalation and enforcement.

    Failures are contained per message: whatever goes wrong is logged with the
    stage it happened in and the caller always gets a verdict back.
    """

    def __init__(
        self,
        *,
        config_store: Optional[ConfigStore] = None,
        audit_sink: Optional[AuditSink] = None,
        settings: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or EngineConfig()
        self._clock = clock
        self.configs = ConfigurationResolver(
            config_store, timeout=self.settings.config_timeout_seconds
        )
        self.history = HistoryStore(
            max_entries=self.settings.history_size,
            max_age_seconds=self.settings.history_max_age_seconds,
            violation_max_age_seconds=self.settings.violation_max_age_seconds,
            clock=clock,
        )
        self.sweeper = RetentionSweeper(
            self.history, interval_seconds=self.settings.sweep_interval_seconds
        )
        self.detectors = DetectorPipeline(self.history)
        self.escalation = EscalationResolver()
        self.enforcement = EnforcementExecutor(timeout=self.settings.action_timeout_seconds)
        self.audit = AuditEmitter(
            audit_sink,
            timeout=self.settings.audit_timeout_seconds,
            content_limit=self.settings.audit_content_limit,
            clock=clock,
        )
        self._locks = AuthorLockRegistry()
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._processed = 0
        self._violations_detected = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start the retention sweeper; must be called from a running loop."""
        if self._closed:
            raise EngineClosedError("auto moderation engine has been shut down")
        self.sweeper.start()

    # message handling

    async def process_message(self, message: InboundMessage) -> ModerationVerdict:
        if self._closed:
            return ModerationVerdict.clean()
        self._enter()
        stage = Stage.RECEIVED
        verdict: Optional[ModerationVerdict] = None
        try:
            if message.author_is_bot:
                return ModerationVerdict.clean()
            if not is_valid_tenant_id(message.tenant_id) or not is_valid_tenant_id(message.author_id):
                _logger.debug("Skipping message without tenant or author id")
                return ModerationVerdict.clean()

            config = await self.configs.resolve(message.tenant_id)
            if not config.enabled:
                return ModerationVerdict.clean()

            stage = Stage.EXEMPT_CHECK
            if self._is_exempt(config, message):
                return ModerationVerdict.clean()

            self._processed += 1
            tenant_id, author_id = message.tenant_id, message.author_id
            now = self._message_time(message)

            async with self._locks.hold((tenant_id, author_id)):
                stage = Stage.RECORDED
                self.history.record(
                    tenant_id,
                    author_id,
                    MessageObservation(now, normalize_content(message.content), message.channel_id),
                )

                stage = Stage.DETECTING
                ctx = DetectionContext(tenant_id, author_id, message.content or "", now)
                detection = self.detectors.evaluate(ctx, config)
                if detection is None:
                    return ModerationVerdict.clean()

                stage = Stage.ESCALATING
                verdict = self._escalate(config, tenant_id, author_id, detection)

            stage = Stage.ENFORCING
            outcome = await self._enforce(config, message, verdict)

            stage = Stage.AUDITED
            await self.audit.emit(config, message, verdict, outcome)

            stage = Stage.DONE
            return verdict
        except Exception:
            _logger.exception(
                "Auto moderation failed at stage %s for tenant %s author %s",
                stage.value,
                message.tenant_id,
                message.author_id,
            )
            return verdict or ModerationVerdict.clean()
        finally:
            self._leave()

    async def process_message_edit(self, message: InboundMessage) -> ModerationVerdict:
        """Re-check edited content; edits do not count towards rate limits."""
        if self._closed or message.author_is_bot:
            return ModerationVerdict.clean()
        if not is_valid_tenant_id(message.tenant_id) or not is_valid_tenant_id(message.author_id):
            return ModerationVerdict.clean()
        self._enter()
        stage = Stage.RECEIVED
        verdict: Optional[ModerationVerdict] = None
        try:
            config = await self.configs.resolve(message.tenant_id)
            if not config.enabled:
                return ModerationVerdict.clean()

            stage = Stage.EXEMPT_CHECK
            if self._is_exempt(config, message):
                return ModerationVerdict.clean()

            tenant_id, author_id = message.tenant_id, message.author_id
            async with self._locks.hold((tenant_id, author_id)):
                stage = Stage.DETECTING
                ctx = DetectionContext(
                    tenant_id, author_id, message.content or "", self._message_time(message)
                )
                detection = self.detectors.evaluate(ctx, config, content_only=True)
                if detection is None:
                    return ModerationVerdict.clean()

                stage = Stage.ESCALATING
                verdict = self._escalate(config, tenant_id, author_id, detection)

            stage = Stage.ENFORCING
            outcome = await self._enforce(config, message, verdict)

            stage = Stage.AUDITED
            await self.audit.emit(config, message, verdict, outcome)
            return verdict
        except Exception:
            _logger.exception(
                "Auto moderation of edited message failed at stage %s for tenant %s author %s",
                stage.value,
                message.tenant_id,
                message.author_id,
            )
            return verdict or ModerationVerdict.clean()
        finally:
            self._leave()

    def _is_exempt(self, config: TenantConfig, message: InboundMessage) -> bool:
        return is_exempt(
            config.exemptions,
            message.author_id,
            message.channel_id,
            message.author_role_ids,
            message.author_is_admin,
        )

    def _message_time(self, message: InboundMessage) -> int:
        if message.created_at_ms is not None:
            return message.created_at_ms
        return self.history.now_ms()

    def _escalate(
        self, config: TenantConfig, tenant_id: str, author_id: str, detection: DetectionResult
    ) -> ModerationVerdict:
        count = self.history.increment_violations(tenant_id, author_id)
        self._violations_detected += 1
        tier = self.escalation.determine_punishment(config.escalation, count)
        return ModerationVerdict(
            violated=True,
            violation_type=detection.violation_type,
            reason=detection.reason or REASON_TEXTS_FALLBACK["default"],
            punishment=tier,
            escalated=self.escalation.is_escalation(config.escalation, count),
            violation_count=count,
        )

    async def _enforce(
        self, config: TenantConfig, message: InboundMessage, verdict: ModerationVerdict
    ) -> EnforcementOutcome:
        outcome = await self.enforcement.apply(
            config,
            message.target,
            verdict.punishment,
            verdict.reason,
            delete_message=message.delete,
            server_name=message.tenant_name,
        )
        if not outcome.success:
            _logger.warning(
                "Could not enforce %s on author %s in tenant %s: %s",
                verdict.punishment.value,
                message.author_id,
                message.tenant_id,
                outcome.reason,
            )
        return outcome

    def _enter(self) -> None:
        self._in_flight += 1
        self._idle.clear()

    def _leave(self) -> None:
        self._in_flight -= 1
        if self._in_flight <= 0:
            self._in_flight = 0
            self._idle.set()

    # operator surface

    async def update_tenant_config(self, tenant_id: str, partial: Mapping[str, Any]) -> TenantConfig:
        return await self.configs.update(tenant_id, partial)

    async def get_tenant_config(self, tenant_id: str) -> TenantConfig:
        return await self.configs.resolve(tenant_id)

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_violations": self.history.total_violations(),
            "users_with_violations": self.history.users_with_violations(),
            "configured_tenants": self.configs.configured_tenants,
            "tracked_authors": self.history.author_count(),
            "tracked_observations": self.history.observation_count(),
            "active_locks": len(self._locks),
            "in_flight": self._in_flight,
            "processed_messages": self._processed,
            "violations_detected": self._violations_detected,
        }

    def reset_user_violations(self, author_id: str, tenant_id: Optional[str] = None) -> bool:
        """Forget the author's violations in one tenant, or in all of them."""
        if tenant_id is not None:
            removed = self.history.reset_violations(tenant_id, author_id)
        else:
            removed = False
            for key_tenant, key_author in self.history.violation_keys_for_author(author_id):
                removed = self.history.reset_violations(key_tenant, key_author) or removed
        if removed:
            _logger.info("Reset auto moderation violations for author %s", author_id)
        return removed

    def get_user_violations(self, author_id: str, tenant_id: Optional[str] = None) -> int:
        if tenant_id is not None:
            return self.history.get_violations(tenant_id, author_id)
        return sum(
            self.history.get_violations(key_tenant, key_author)
            for key_tenant, key_author in self.history.violation_keys_for_author(author_id)
        )

    def force_cleanup(self) -> SweepReport:
        return self.sweeper.run_once()

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        _logger.info("Shutting down auto moderation engine")

        if self._in_flight:
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=self.settings.shutdown_drain_seconds)
            except asyncio.TimeoutError:
                _logger.warning(
                    "Timed out draining %s in-flight auto moderation messages", self._in_flight
                )

        await self.sweeper.stop()
        await self.configs.flush()
        self.history.clear()
        self.configs.clear()
        self._locks.clear()
