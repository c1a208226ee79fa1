from .audit import AuditEmitter, LoggingAuditSink
from .config_service import ConfigurationResolver, is_valid_tenant_id
from .detectors import DetectionContext, DetectorPipeline
from .enforcement import EnforcementExecutor
from .engine import AutoModerationEngine, Stage
from .errors import AutoModError, EngineClosedError
from .escalation import EscalationResolver
from .exemptions import is_exempt
from .history import AuthorLockRegistry, HistoryStore, RetentionSweeper, SweepReport
from .interfaces import ActionResult, AuditSink, ConfigStore, EnforcementTarget, Privileges
from .models import (
    AuditRecord,
    DetectionResult,
    EnforcementAttempt,
    EnforcementOutcome,
    InboundMessage,
    MessageObservation,
    ModerationVerdict,
    PunishmentTier,
    ViolationType,
)
from .settings import DEFAULT_TENANT_CONFIG, TenantConfig, config_to_dict, merge_config

__all__ = [
    "AuditEmitter",
    "LoggingAuditSink",
    "ConfigurationResolver",
    "is_valid_tenant_id",
    "DetectionContext",
    "DetectorPipeline",
    "EnforcementExecutor",
    "AutoModerationEngine",
    "Stage",
    "AutoModError",
    "EngineClosedError",
    "EscalationResolver",
    "is_exempt",
    "AuthorLockRegistry",
    "HistoryStore",
    "RetentionSweeper",
    "SweepReport",
    "ActionResult",
    "AuditSink",
    "ConfigStore",
    "EnforcementTarget",
    "Privileges",
    "AuditRecord",
    "DetectionResult",
    "EnforcementAttempt",
    "EnforcementOutcome",
    "InboundMessage",
    "MessageObservation",
    "ModerationVerdict",
    "PunishmentTier",
    "ViolationType",
    "DEFAULT_TENANT_CONFIG",
    "TenantConfig",
    "config_to_dict",
    "merge_config",
]
