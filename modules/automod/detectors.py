from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from itertools import chain
from typing import Callable, Iterable, Iterator, Optional

from better_profanity import Profanity

from modules.utils.url_utils import extract_host, extract_urls

from .constants import (
    BUILTIN_PROFANITY,
    DISCORD_INVITE_PATTERN,
    MIN_PROFANITY_WORD_LENGTH,
    NON_ACTIONABLE_HOSTS,
    SUSPICIOUS_LINK_PATTERNS,
)
from .history import HistoryStore
from .models import DetectionResult, ViolationType
from .settings import CapsSettings, LinkSettings, ProfanitySettings, SpamSettings, TenantConfig
from .texts import REASON_TEXTS_FALLBACK

__all__ = [
    "DetectionContext",
    "DetectorPipeline",
    "DETECTOR_ORDER",
    "normalize_content",
    "check_rate_spam",
    "check_duplicate_spam",
    "check_profanity",
    "check_suspicious_links",
    "check_excessive_caps",
]

_logger = logging.getLogger(__name__)

_strict_filter: Profanity | None = None


def normalize_content(content: Optional[str]) -> str:
    return (content or "").strip().lower()


@dataclass(frozen=True, slots=True)
class DetectionContext:
    tenant_id: str
    author_id: str
    content: str
    now_ms: int

    @property
    def normalized(self) -> str:
        return normalize_content(self.content)


def check_rate_spam(
    ctx: DetectionContext, settings: SpamSettings, history: HistoryStore
) -> Optional[DetectionResult]:
    recent = history.window(ctx.tenant_id, ctx.author_id, ctx.now_ms - settings.time_window * 1000)
    if len(recent) < settings.max_messages:
        return None
    return DetectionResult(
        ViolationType.SPAM,
        REASON_TEXTS_FALLBACK["spam"].format(count=len(recent), window=settings.time_window),
    )


def check_duplicate_spam(
    ctx: DetectionContext, settings: SpamSettings, history: HistoryStore
) -> Optional[DetectionResult]:
    normalized = ctx.normalized
    if not normalized:
        return None
    recent = history.window(
        ctx.tenant_id, ctx.author_id, ctx.now_ms - settings.duplicate_time_window * 1000
    )
    duplicates = sum(1 for obs in recent if obs.content == normalized)
    if duplicates < settings.max_duplicates:
        return None
    return DetectionResult(
        ViolationType.DUPLICATE_MESSAGE,
        REASON_TEXTS_FALLBACK["duplicate_message"].format(
            count=duplicates, window=settings.duplicate_time_window
        ),
    )


@lru_cache(maxsize=4096)
def _word_pattern(word: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(word)}(?!\w)", re.IGNORECASE)


def active_words(settings: ProfanitySettings) -> Iterator[str]:
    seen: set[str] = set()
    for word in (*BUILTIN_PROFANITY, *settings.custom_words):
        candidate = word.strip().lower()
        if len(candidate) < MIN_PROFANITY_WORD_LENGTH or candidate in seen:
            continue
        seen.add(candidate)
        yield candidate


def _strict_contains_profanity(content: str) -> bool:
    global _strict_filter
    if _strict_filter is None:
        _strict_filter = Profanity()
    return _strict_filter.contains_profanity(content)


def check_profanity(ctx: DetectionContext, settings: ProfanitySettings) -> Optional[DetectionResult]:
    content = ctx.content
    if not content:
        return None
    for word in active_words(settings):
        try:
            pattern = _word_pattern(word)
        except re.error as exc:
            _logger.warning("Skipping profanity word %r that failed to compile: %s", word, exc)
            continue
        if pattern.search(content):
            return DetectionResult(
                ViolationType.PROFANITY,
                REASON_TEXTS_FALLBACK["profanity"].format(word=word),
            )
    if settings.strict_mode and _strict_contains_profanity(content):
        return DetectionResult(ViolationType.PROFANITY, REASON_TEXTS_FALLBACK["profanity_strict"])
    return None


@lru_cache(maxsize=256)
def _link_pattern(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _matched_urls(patterns: Iterable[str], content: str) -> Iterator[str]:
    for raw in patterns:
        try:
            compiled = _link_pattern(raw)
        except re.error as exc:
            _logger.warning("Skipping link pattern %r that failed to compile: %s", raw, exc)
            continue
        for match in compiled.finditer(content):
            yield match.group(0)


def check_suspicious_links(ctx: DetectionContext, settings: LinkSettings) -> Optional[DetectionResult]:
    content = ctx.content
    if not content:
        return None

    if settings.block_invites and DISCORD_INVITE_PATTERN.search(content):
        return DetectionResult(ViolationType.DISCORD_INVITE, REASON_TEXTS_FALLBACK["discord_invite"])

    if not settings.block_suspicious:
        return None

    checked: set[str] = set()
    candidates = chain(
        _matched_urls(SUSPICIOUS_LINK_PATTERNS, content),
        extract_urls(content),
        _matched_urls(settings.patterns, content),
    )
    for url in candidates:
        host = extract_host(url)
        if not host or host in NON_ACTIONABLE_HOSTS or host in checked:
            continue
        checked.add(host)
        if host in settings.blacklist:
            return DetectionResult(
                ViolationType.SUSPICIOUS_LINK,
                REASON_TEXTS_FALLBACK["blacklisted_link"].format(host=host),
            )
        if settings.allow_whitelisted and host in settings.whitelist:
            continue
        return DetectionResult(
            ViolationType.SUSPICIOUS_LINK,
            REASON_TEXTS_FALLBACK["suspicious_link"].format(host=host),
        )
    return None


def check_excessive_caps(ctx: DetectionContext, settings: CapsSettings) -> Optional[DetectionResult]:
    content = ctx.content
    if len(content) < settings.min_length:
        return None
    letters = [char for char in content if char.isupper() or char.islower()]
    if len(letters) < settings.min_length:
        return None
    uppercase = sum(1 for char in letters if char.isupper())
    percentage = uppercase / len(letters) * 100
    if percentage <= settings.max_percentage:
        return None
    return DetectionResult(
        ViolationType.EXCESSIVE_CAPS,
        REASON_TEXTS_FALLBACK["excessive_caps"].format(percentage=percentage),
    )


_Detector = Callable[[DetectionContext, TenantConfig, HistoryStore], Optional[DetectionResult]]

DETECTOR_ORDER: tuple[tuple[str, bool, _Detector], ...] = (
    (
        "rate_spam",
        True,
        lambda ctx, cfg, history: check_rate_spam(ctx, cfg.spam, history) if cfg.spam.enabled else None,
    ),
    (
        "duplicate_spam",
        True,
        lambda ctx, cfg, history: check_duplicate_spam(ctx, cfg.spam, history) if cfg.spam.enabled else None,
    ),
    (
        "profanity",
        False,
        lambda ctx, cfg, _: check_profanity(ctx, cfg.profanity) if cfg.profanity.enabled else None,
    ),
    (
        "suspicious_link",
        False,
        lambda ctx, cfg, _: check_suspicious_links(ctx, cfg.links) if cfg.links.enabled else None,
    ),
    (
        "excessive_caps",
        False,
        lambda ctx, cfg, _: check_excessive_caps(ctx, cfg.caps) if cfg.caps.enabled else None,
    ),
)
"""Detectors in precedence order as ``(name, uses_history, detector)``."""


class DetectorPipeline:
    """Runs the detectors in precedence order and stops at the first match."""

    def __init__(self, history: HistoryStore) -> None:
        self._history = history

    def evaluate(
        self,
        ctx: DetectionContext,
        config: TenantConfig,
        *,
        content_only: bool = False,
    ) -> Optional[DetectionResult]:
        for name, uses_history, detector in DETECTOR_ORDER:
            if content_only and uses_history:
                continue
            result = detector(ctx, config, self._history)
            if result is not None:
                _logger.debug(
                    "Detector %s matched for tenant %s author %s: %s",
                    name,
                    ctx.tenant_id,
                    ctx.author_id,
                    result.reason,
                )
                return result
        return None
