from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

_logger = logging.getLogger(__name__)


def _parse_int(
    raw: str | None,
    *,
    default: int,
    minimum: int | None = None,
    name: str = "value",
) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        _logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        _logger.warning("%s=%s below minimum %s; clamping", name, value, minimum)
        return minimum
    return value


def _parse_float(
    raw: str | None,
    *,
    default: float,
    minimum: float | None = None,
    name: str = "value",
) -> float:
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        _logger.warning("Invalid %s=%s; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        _logger.warning("%s=%s below minimum %s; clamping", name, value, minimum)
        return minimum
    return value


@dataclass(slots=True)
class EngineConfig:
    history_size: int = 10
    history_max_age_seconds: int = 24 * 60 * 60
    violation_max_age_seconds: int = 7 * 24 * 60 * 60
    sweep_interval_seconds: int = 60 * 60
    action_timeout_seconds: float = 10.0
    audit_timeout_seconds: float = 5.0
    config_timeout_seconds: float = 5.0
    audit_content_limit: int = 1000
    shutdown_drain_seconds: float = 5.0


@dataclass(slots=True)
class RuntimeConfig:
    token: str
    log_level: str
    log_cog_loads: bool
    engine: EngineConfig = field(default_factory=EngineConfig)


TRUE_VALUES = {"1", "true", "yes", "on"}


def _parse_bool(raw: str | None, *, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.lower() in TRUE_VALUES


def load_engine_config() -> EngineConfig:
    defaults = EngineConfig()
    return EngineConfig(
        history_size=_parse_int(
            os.getenv("AUTOMOD_HISTORY_SIZE"),
            default=defaults.history_size,
            minimum=2,
            name="AUTOMOD_HISTORY_SIZE",
        ),
        history_max_age_seconds=_parse_int(
            os.getenv("AUTOMOD_HISTORY_MAX_AGE_SECONDS"),
            default=defaults.history_max_age_seconds,
            minimum=60,
            name="AUTOMOD_HISTORY_MAX_AGE_SECONDS",
        ),
        violation_max_age_seconds=_parse_int(
            os.getenv("AUTOMOD_VIOLATION_MAX_AGE_SECONDS"),
            default=defaults.violation_max_age_seconds,
            minimum=3600,
            name="AUTOMOD_VIOLATION_MAX_AGE_SECONDS",
        ),
        sweep_interval_seconds=_parse_int(
            os.getenv("AUTOMOD_SWEEP_INTERVAL_SECONDS"),
            default=defaults.sweep_interval_seconds,
            minimum=10,
            name="AUTOMOD_SWEEP_INTERVAL_SECONDS",
        ),
        action_timeout_seconds=_parse_float(
            os.getenv("AUTOMOD_ACTION_TIMEOUT_SECONDS"),
            default=defaults.action_timeout_seconds,
            minimum=1.0,
            name="AUTOMOD_ACTION_TIMEOUT_SECONDS",
        ),
        audit_timeout_seconds=_parse_float(
            os.getenv("AUTOMOD_AUDIT_TIMEOUT_SECONDS"),
            default=defaults.audit_timeout_seconds,
            minimum=1.0,
            name="AUTOMOD_AUDIT_TIMEOUT_SECONDS",
        ),
        config_timeout_seconds=_parse_float(
            os.getenv("AUTOMOD_CONFIG_TIMEOUT_SECONDS"),
            default=defaults.config_timeout_seconds,
            minimum=1.0,
            name="AUTOMOD_CONFIG_TIMEOUT_SECONDS",
        ),
        audit_content_limit=_parse_int(
            os.getenv("AUTOMOD_AUDIT_CONTENT_LIMIT"),
            default=defaults.audit_content_limit,
            minimum=50,
            name="AUTOMOD_AUDIT_CONTENT_LIMIT",
        ),
        shutdown_drain_seconds=_parse_float(
            os.getenv("AUTOMOD_SHUTDOWN_DRAIN_SECONDS"),
            default=defaults.shutdown_drain_seconds,
            minimum=0.0,
            name="AUTOMOD_SHUTDOWN_DRAIN_SECONDS",
        ),
    )


def load_runtime_config() -> RuntimeConfig:
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN", "")
    log_level = os.getenv("LOG_LEVEL", "WARNING").upper()
    log_cog_loads = _parse_bool(os.getenv("LOG_COG_LOADS"), default=False)

    return RuntimeConfig(
        token=token,
        log_level=log_level,
        log_cog_loads=log_cog_loads,
        engine=load_engine_config(),
    )
