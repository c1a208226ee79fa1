from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from .interfaces import AuditSink
from .models import AuditRecord, EnforcementOutcome, InboundMessage, ModerationVerdict
from .settings import TenantConfig

__all__ = ["AuditEmitter", "LoggingAuditSink", "DEFAULT_CONTENT_LIMIT"]

_logger = logging.getLogger(__name__)

DEFAULT_CONTENT_LIMIT = 1000


class LoggingAuditSink:
    """Audit sink that writes each record to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("automod.audit")

    async def record(self, entry: AuditRecord) -> None:
        self._logger.info(
            "tenant=%s author=%s channel=%s violation=%s requested=%s attempted=%s applied=%s success=%s reason=%s failure=%s",
            entry.tenant_id,
            entry.author_id,
            entry.channel_id,
            entry.violation_type.value if entry.violation_type else None,
            entry.requested_tier.value if entry.requested_tier else None,
            entry.attempted_tier.value if entry.attempted_tier else None,
            entry.applied_tier.value if entry.applied_tier else None,
            entry.success,
            entry.reason,
            entry.failure_reason,
        )


class AuditEmitter:
    """Turns a verdict and its enforcement trace into audit records."""

    def __init__(
        self,
        sink: Optional[AuditSink] = None,
        *,
        timeout: float = 5.0,
        content_limit: int = DEFAULT_CONTENT_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sink = sink
        self._timeout = timeout
        self._content_limit = content_limit
        self._clock = clock

    def build_records(
        self,
        config: TenantConfig,
        message: InboundMessage,
        verdict: ModerationVerdict,
        outcome: Optional[EnforcementOutcome],
    ) -> list[AuditRecord]:
        settings = config.logging
        if not settings.enabled:
            return []

        content = None
        if settings.log_deleted_messages and message.content:
            content = message.content[: self._content_limit]

        base = dict(
            timestamp=self._clock(),
            tenant_id=message.tenant_id or "",
            author_id=message.author_id or "",
            channel_id=message.channel_id,
            violation_type=verdict.violation_type,
            requested_tier=verdict.punishment,
            reason=verdict.reason,
            content=content,
            log_channel_id=settings.channel_id,
            violation_count=verdict.violation_count,
            escalated=verdict.escalated,
            message_deleted=outcome.message_deleted if outcome else False,
        )

        if outcome is None or not outcome.attempts:
            if not settings.logs_tier(verdict.punishment):
                return []
            return [AuditRecord(applied_tier=None, success=False, **base)]

        records = []
        for attempt in outcome.attempts:
            if not settings.logs_tier(attempt.tier):
                continue
            records.append(
                AuditRecord(
                    attempted_tier=attempt.tier,
                    applied_tier=attempt.tier if attempt.success else None,
                    success=attempt.success,
                    failure_reason=None if attempt.success else attempt.reason,
                    **base,
                )
            )
        return records

    async def emit(
        self,
        config: TenantConfig,
        message: InboundMessage,
        verdict: ModerationVerdict,
        outcome: Optional[EnforcementOutcome],
    ) -> int:
        """Send records to the sink; returns how many were accepted."""
        if self._sink is None:
            return 0
        delivered = 0
        for record in self.build_records(config, message, verdict, outcome):
            try:
                await asyncio.wait_for(self._sink.record(record), timeout=self._timeout)
            except asyncio.TimeoutError:
                _logger.warning(
                    "Timed out writing audit record for tenant %s author %s",
                    record.tenant_id,
                    record.author_id,
                )
            except Exception:
                _logger.warning(
                    "Failed to write audit record for tenant %s author %s",
                    record.tenant_id,
                    record.author_id,
                    exc_info=True,
                )
            else:
                delivered += 1
        return delivered
