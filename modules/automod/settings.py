from __future__ import annotations

import dataclasses
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional

from modules.utils.time import duration_to_minutes
from modules.utils.url_utils import normalize_host_entry

from .constants import (
    DEFAULT_LINK_BLACKLIST,
    DEFAULT_LINK_WHITELIST,
    MAX_BAN_DELETE_DAYS,
    MAX_CUSTOM_PATTERNS,
    MAX_CUSTOM_WORD_LENGTH,
    MAX_CUSTOM_WORDS,
    MAX_EXEMPTION_ENTRIES,
    MAX_HOST_ENTRIES,
    MAX_MUTE_MINUTES,
)
from .models import PunishmentTier

__all__ = [
    "SpamSettings",
    "ProfanitySettings",
    "LinkSettings",
    "CapsSettings",
    "TierSettings",
    "MuteSettings",
    "BanSettings",
    "PunishmentSettings",
    "EscalationSettings",
    "LoggingSettings",
    "ExemptionSettings",
    "TenantConfig",
    "DEFAULT_TENANT_CONFIG",
    "merge_config",
    "config_from_mapping",
    "config_to_dict",
]

_logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class _Invalid(Exception):
    """Raised by a coercer when a value cannot be used for a field."""


def _rule(kind: str, *, minimum: float | None = None, maximum: float | None = None, **options: Any) -> dict:
    return {"kind": kind, "min": minimum, "max": maximum, **options}


def _bool_field(default: bool) -> Any:
    return field(default=default, metadata=_rule("bool"))


def _int_field(default: int, minimum: int, maximum: int) -> Any:
    return field(default=default, metadata=_rule("int", minimum=minimum, maximum=maximum))


def _list_field(default: tuple[str, ...] = (), **options: Any) -> Any:
    return field(default=default, metadata=_rule("list", **options))


@dataclass(frozen=True, slots=True)
class SpamSettings:
    enabled: bool = _bool_field(True)
    max_messages: int = _int_field(5, 2, 50)
    time_window: int = _int_field(10, 1, 300)
    max_duplicates: int = _int_field(3, 2, 20)
    duplicate_time_window: int = _int_field(30, 1, 3600)


@dataclass(frozen=True, slots=True)
class ProfanitySettings:
    enabled: bool = _bool_field(True)
    strict_mode: bool = _bool_field(False)
    custom_words: tuple[str, ...] = _list_field(
        (), lower=True, limit=MAX_CUSTOM_WORDS, item_max=MAX_CUSTOM_WORD_LENGTH
    )


@dataclass(frozen=True, slots=True)
class LinkSettings:
    enabled: bool = _bool_field(True)
    allow_whitelisted: bool = _bool_field(True)
    block_invites: bool = _bool_field(True)
    block_suspicious: bool = _bool_field(True)
    whitelist: tuple[str, ...] = _list_field(DEFAULT_LINK_WHITELIST, host=True, limit=MAX_HOST_ENTRIES)
    blacklist: tuple[str, ...] = _list_field(DEFAULT_LINK_BLACKLIST, host=True, limit=MAX_HOST_ENTRIES)
    patterns: tuple[str, ...] = _list_field((), pattern=True, limit=MAX_CUSTOM_PATTERNS)


@dataclass(frozen=True, slots=True)
class CapsSettings:
    enabled: bool = _bool_field(True)
    max_percentage: int = _int_field(70, 1, 100)
    min_length: int = _int_field(10, 1, 2000)


@dataclass(frozen=True, slots=True)
class TierSettings:
    enabled: bool = _bool_field(True)
    delete_message: bool = _bool_field(True)


@dataclass(frozen=True, slots=True)
class MuteSettings:
    enabled: bool = _bool_field(True)
    delete_message: bool = _bool_field(True)
    duration: int = field(default=10, metadata=_rule("minutes", minimum=1, maximum=MAX_MUTE_MINUTES))


@dataclass(frozen=True, slots=True)
class BanSettings:
    enabled: bool = _bool_field(True)
    delete_message: bool = _bool_field(True)
    delete_message_days: int = _int_field(1, 0, MAX_BAN_DELETE_DAYS)


@dataclass(frozen=True, slots=True)
class PunishmentSettings:
    warn: TierSettings = field(default_factory=TierSettings, metadata=_rule("section"))
    mute: MuteSettings = field(default_factory=MuteSettings, metadata=_rule("section"))
    kick: TierSettings = field(default_factory=TierSettings, metadata=_rule("section"))
    ban: BanSettings = field(default_factory=BanSettings, metadata=_rule("section"))

    def for_tier(self, tier: PunishmentTier) -> TierSettings | MuteSettings | BanSettings:
        return getattr(self, tier.value)


@dataclass(frozen=True, slots=True)
class EscalationSettings:
    enabled: bool = _bool_field(True)
    warn_threshold: int = _int_field(3, 1, 1000)
    mute_threshold: int = _int_field(5, 1, 1000)
    kick_threshold: int = _int_field(8, 1, 1000)
    ban_threshold: int = _int_field(10, 1, 1000)
    reset_time: int = _int_field(24, 1, 720)

    def thresholds(self) -> tuple[tuple[PunishmentTier, int], ...]:
        return (
            (PunishmentTier.WARN, self.warn_threshold),
            (PunishmentTier.MUTE, self.mute_threshold),
            (PunishmentTier.KICK, self.kick_threshold),
            (PunishmentTier.BAN, self.ban_threshold),
        )


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    enabled: bool = _bool_field(True)
    channel_id: Optional[str] = field(default=None, metadata=_rule("str"))
    log_warnings: bool = _bool_field(True)
    log_mutes: bool = _bool_field(True)
    log_kicks: bool = _bool_field(True)
    log_bans: bool = _bool_field(True)
    log_deleted_messages: bool = _bool_field(True)

    def logs_tier(self, tier: Optional[PunishmentTier]) -> bool:
        if tier is None:
            return True
        return {
            PunishmentTier.WARN: self.log_warnings,
            PunishmentTier.MUTE: self.log_mutes,
            PunishmentTier.KICK: self.log_kicks,
            PunishmentTier.BAN: self.log_bans,
        }[tier]


@dataclass(frozen=True, slots=True)
class ExemptionSettings:
    users: tuple[str, ...] = _list_field((), limit=MAX_EXEMPTION_ENTRIES)
    roles: tuple[str, ...] = _list_field((), limit=MAX_EXEMPTION_ENTRIES)
    channels: tuple[str, ...] = _list_field((), limit=MAX_EXEMPTION_ENTRIES)


@dataclass(frozen=True, slots=True)
class TenantConfig:
    """Per-tenant auto moderation settings. Replaced wholesale, never mutated."""

    enabled: bool = _bool_field(True)
    spam: SpamSettings = field(default_factory=SpamSettings, metadata=_rule("section"))
    profanity: ProfanitySettings = field(default_factory=ProfanitySettings, metadata=_rule("section"))
    links: LinkSettings = field(default_factory=LinkSettings, metadata=_rule("section"))
    caps: CapsSettings = field(default_factory=CapsSettings, metadata=_rule("section"))
    punishments: PunishmentSettings = field(default_factory=PunishmentSettings, metadata=_rule("section"))
    escalation: EscalationSettings = field(default_factory=EscalationSettings, metadata=_rule("section"))
    logging: LoggingSettings = field(default_factory=LoggingSettings, metadata=_rule("section"))
    exemptions: ExemptionSettings = field(default_factory=ExemptionSettings, metadata=_rule("section"))


DEFAULT_TENANT_CONFIG = TenantConfig()

# Section names used by dashboard payloads.
_KEY_ALIASES = {
    "spam_detection": "spam",
    "profanity_filter": "profanity",
    "link_filter": "links",
    "caps_filter": "caps",
    "exempt": "exemptions",
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _normalize_key(key: Any) -> Optional[str]:
    if not isinstance(key, str):
        return None
    snake = _CAMEL_RE.sub("_", key.strip()).replace("-", "_").lower()
    return _KEY_ALIASES.get(snake, snake)


def _normalize_mapping(raw: Mapping[Any, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        name = _normalize_key(key)
        if name is not None:
            normalized[name] = value
    return normalized


def _coerce_bool(value: Any, rule: dict) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
    raise _Invalid(value)


def _clamp(value: float, rule: dict) -> int:
    if rule["min"] is not None and value < rule["min"]:
        return int(rule["min"])
    if rule["max"] is not None and value > rule["max"]:
        return int(rule["max"])
    return int(value)


def _coerce_int(value: Any, rule: dict) -> int:
    if isinstance(value, bool):
        raise _Invalid(value)
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise _Invalid(value) from exc
    if not isinstance(value, (int, float)) or (isinstance(value, float) and not math.isfinite(value)):
        raise _Invalid(value)
    return _clamp(value, rule)


def _coerce_minutes(value: Any, rule: dict) -> int:
    if isinstance(value, float) and not math.isfinite(value):
        raise _Invalid(value)
    minutes = duration_to_minutes(value)
    if minutes is None:
        raise _Invalid(value)
    return _clamp(minutes, rule)


def _coerce_str(value: Any, rule: dict) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise _Invalid(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    raise _Invalid(value)


def _is_compilable(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error as exc:
        _logger.warning("Dropping invalid link pattern %r: %s", pattern, exc)
        return False
    return True


def _coerce_list(value: Any, rule: dict) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        items: Iterable[Any] = [value]
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, bytearray, Mapping)):
        items = value
    else:
        raise _Invalid(value)

    result: list[str] = []
    seen: set[str] = set()
    limit = rule.get("limit")
    item_max = rule.get("item_max")
    for item in items:
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            continue
        text = str(item) if rule.get("pattern") else str(item).strip()
        if not text.strip():
            continue
        if rule.get("lower"):
            text = text.lower()
        if rule.get("host"):
            text = normalize_host_entry(text)
            if not text:
                continue
        if item_max is not None and len(text) > item_max:
            continue
        if rule.get("pattern") and not _is_compilable(text):
            continue
        if text in seen:
            continue
        seen.add(text)
        result.append(text)
        if limit is not None and len(result) >= limit:
            break
    return tuple(result)


_COERCERS: dict[str, Callable[[Any, dict], Any]] = {
    "bool": _coerce_bool,
    "int": _coerce_int,
    "minutes": _coerce_minutes,
    "str": _coerce_str,
    "list": _coerce_list,
}


def _merge_section(current: Any, partial: Any, default: Any, path: str) -> Any:
    if not isinstance(partial, Mapping):
        if partial is not None:
            _logger.warning("Ignoring non-mapping value for %s: %r", path, partial)
        return current

    updates = _normalize_mapping(partial)
    changes: dict[str, Any] = {}
    for item in dataclasses.fields(current):
        if item.name not in updates:
            continue
        value = updates[item.name]
        rule = item.metadata.get("kind")
        field_path = f"{path}.{item.name}" if path else item.name
        if rule == "section":
            changes[item.name] = _merge_section(
                getattr(current, item.name),
                value,
                getattr(default, item.name),
                field_path,
            )
            continue
        try:
            changes[item.name] = _COERCERS[rule](value, item.metadata)
        except _Invalid:
            fallback = getattr(default, item.name)
            _logger.warning(
                "Invalid value %r for %s; using default %r", value, field_path, fallback
            )
            changes[item.name] = fallback

    if not changes:
        return current
    return dataclasses.replace(current, **changes)


def _ascending(settings: EscalationSettings) -> bool:
    values = [threshold for _, threshold in settings.thresholds()]
    return values == sorted(values)


def _check_thresholds(config: TenantConfig, previous: TenantConfig) -> TenantConfig:
    """Reject a threshold update that breaks the ascending order.

    The previous thresholds are kept; the defaults are used only when those are
    out of order as well.
    """
    if _ascending(config.escalation):
        return config
    restored = previous.escalation if _ascending(previous.escalation) else DEFAULT_TENANT_CONFIG.escalation
    _logger.warning(
        "Escalation thresholds %s are not ascending; keeping %s",
        [threshold for _, threshold in config.escalation.thresholds()],
        [threshold for _, threshold in restored.thresholds()],
    )
    escalation = dataclasses.replace(
        config.escalation,
        warn_threshold=restored.warn_threshold,
        mute_threshold=restored.mute_threshold,
        kick_threshold=restored.kick_threshold,
        ban_threshold=restored.ban_threshold,
    )
    return dataclasses.replace(config, escalation=escalation)


def merge_config(current: TenantConfig, partial: Mapping[str, Any] | None) -> TenantConfig:
    """Return a new config with *partial* merged into *current*.

    Every field is validated on its own: out-of-range numbers are clamped to the
    field bounds, values of the wrong type fall back to the field default, and
    the rest of the config is left as it was.
    """
    if not partial:
        return current
    merged = _merge_section(current, partial, DEFAULT_TENANT_CONFIG, "")
    return _check_thresholds(merged, current)


def config_from_mapping(raw: Mapping[str, Any] | None) -> TenantConfig:
    return merge_config(DEFAULT_TENANT_CONFIG, raw)


def config_to_dict(config: TenantConfig) -> dict[str, Any]:
    data = dataclasses.asdict(config)

    def _listify(value: Any) -> Any:
        if isinstance(value, dict):
            return {k: _listify(v) for k, v in value.items()}
        if isinstance(value, tuple):
            return list(value)
        return value

    return _listify(data)
