import logging
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from modules.automod import detectors
from modules.automod.detectors import (
    DetectionContext,
    DetectorPipeline,
    check_duplicate_spam,
    check_excessive_caps,
    check_profanity,
    check_rate_spam,
    check_suspicious_links,
)
from modules.automod.history import HistoryStore
from modules.automod.models import MessageObservation, ViolationType
from modules.automod.settings import (
    DEFAULT_TENANT_CONFIG,
    CapsSettings,
    LinkSettings,
    ProfanitySettings,
    SpamSettings,
    config_from_mapping,
    merge_config,
)

NOW = 1_000_000


def _ctx(content: str, now: int = NOW) -> DetectionContext:
    return DetectionContext("g", "u", content, now)


def _fill(store: HistoryStore, contents, *, now: int = NOW, step: int = 100):
    for index, content in enumerate(contents):
        store.record("g", "u", MessageObservation(now - step * index, content.strip().lower()))


# rate spam

def test_rate_spam_triggers_at_threshold():
    store = HistoryStore()
    _fill(store, [f"msg {i}" for i in range(5)])

    result = check_rate_spam(_ctx("msg 0"), SpamSettings(), store)

    assert result is not None
    assert result.violation_type is ViolationType.SPAM
    assert "5 messages" in result.reason


def test_rate_spam_below_threshold_or_outside_window():
    store = HistoryStore()
    _fill(store, [f"msg {i}" for i in range(4)])
    store.record("g", "u", MessageObservation(NOW - 60_000, "old"))

    assert check_rate_spam(_ctx("msg"), SpamSettings(), store) is None


# duplicate spam

def test_duplicate_spam_counts_normalised_content():
    store = HistoryStore()
    _fill(store, ["Buy now", "buy NOW ", "buy now"])

    result = check_duplicate_spam(_ctx("  BUY NOW"), SpamSettings(), store)

    assert result is not None
    assert result.violation_type is ViolationType.DUPLICATE_MESSAGE


def test_duplicate_spam_ignores_empty_and_distinct_messages():
    store = HistoryStore()
    _fill(store, ["", "", ""])
    assert check_duplicate_spam(_ctx(""), SpamSettings(), store) is None

    store = HistoryStore()
    _fill(store, ["a", "b", "a"])
    assert check_duplicate_spam(_ctx("a"), SpamSettings(), store) is None


# profanity

def test_profanity_detects_builtin_word():
    result = check_profanity(_ctx("what the FUCK is this"), ProfanitySettings())

    assert result is not None
    assert result.violation_type is ViolationType.PROFANITY
    assert "fuck" in result.reason


def test_profanity_respects_word_boundaries():
    assert check_profanity(_ctx("I grew up in Scunthorpe"), ProfanitySettings()) is None
    assert check_profanity(_ctx("passing the class"), ProfanitySettings()) is None


def test_profanity_custom_words_are_escaped():
    settings = ProfanitySettings(custom_words=("c++", "frak"))

    assert check_profanity(_ctx("I write c++ daily"), settings) is not None
    assert check_profanity(_ctx("oh frak"), settings) is not None
    assert check_profanity(_ctx("I write c daily"), settings) is None


def test_profanity_multi_word_phrase():
    assert check_profanity(_ctx("seu filho da puta"), ProfanitySettings()) is not None


def test_profanity_word_list_covers_mild_terms():
    assert check_profanity(_ctx("what the hell"), ProfanitySettings()) is not None
    assert check_profanity(_ctx("que burro"), ProfanitySettings()) is not None
    assert check_profanity(_ctx("hello shell users"), ProfanitySettings()) is None


def test_profanity_strict_mode_consults_filter(monkeypatch):
    calls: list[str] = []

    class _FakeFilter:
        def contains_profanity(self, text):
            calls.append(text)
            return "sh1t" in text

    monkeypatch.setattr(detectors, "_strict_filter", _FakeFilter())

    assert check_profanity(_ctx("oh sh1t"), ProfanitySettings()) is None
    assert calls == []

    result = check_profanity(_ctx("oh sh1t"), ProfanitySettings(strict_mode=True))
    assert result is not None
    assert result.violation_type is ViolationType.PROFANITY
    assert calls == ["oh sh1t"]


# links

def test_discord_invite_is_flagged_first():
    result = check_suspicious_links(_ctx("join discord.gg/abc123 now"), LinkSettings())

    assert result is not None
    assert result.violation_type is ViolationType.DISCORD_INVITE


def test_invites_allowed_when_not_blocked():
    settings = LinkSettings(block_invites=False)
    assert check_suspicious_links(_ctx("join discord.gg/abc123"), settings) is None


@pytest.mark.parametrize(
    "content",
    ["see https://github.com/org/repo", "https://www.youtube.com/watch?v=1", "plain text only"],
)
def test_whitelisted_or_linkless_messages_pass(content):
    assert check_suspicious_links(_ctx(content), LinkSettings()) is None


def test_unknown_host_is_suspicious():
    result = check_suspicious_links(_ctx("login at https://evil.example.com/x"), LinkSettings())

    assert result is not None
    assert result.violation_type is ViolationType.SUSPICIOUS_LINK
    assert "evil.example.com" in result.reason


@pytest.mark.parametrize("content", ["i use node.js daily", "ok.thanks everyone", "check config.yaml"])
def test_dotted_words_are_not_links(content):
    assert check_suspicious_links(_ctx(content), LinkSettings()) is None


def test_bare_domain_is_suspicious():
    result = check_suspicious_links(_ctx("visit evil-site.com now"), LinkSettings())

    assert result is not None
    assert result.violation_type is ViolationType.SUSPICIOUS_LINK
    assert "evil-site.com" in result.reason


def test_whitelist_removal_makes_host_actionable():
    content = "read https://example.org/page"
    allowed = config_from_mapping({"links": {"whitelist": ["example.org"]}})

    assert check_suspicious_links(_ctx(content), allowed.links) is None

    removed = merge_config(allowed, {"links": {"whitelist": []}})
    result = check_suspicious_links(_ctx(content), removed.links)

    assert result is not None
    assert "example.org" in result.reason


def test_blacklisted_host_beats_whitelist():
    settings = LinkSettings(whitelist=("bit.ly",), blacklist=("bit.ly",))

    result = check_suspicious_links(_ctx("free stuff bit.ly/xyz"), settings)

    assert result is not None
    assert "Blocked link" in result.reason


def test_whitelist_can_be_ignored():
    settings = LinkSettings(allow_whitelisted=False)
    assert check_suspicious_links(_ctx("https://github.com"), settings) is not None


def test_suspicious_blocking_can_be_disabled():
    settings = LinkSettings(block_suspicious=False)
    assert check_suspicious_links(_ctx("https://evil.example.com"), settings) is None


def test_bad_runtime_pattern_is_skipped(caplog):
    settings = LinkSettings(patterns=("(broken",))

    with caplog.at_level(logging.WARNING):
        result = check_suspicious_links(_ctx("no links in here"), settings)

    assert result is None
    assert any("(broken" in record.getMessage() for record in caplog.records)


# caps

def test_excessive_caps_detected():
    result = check_excessive_caps(_ctx("THIS IS A VERY LOUD MESSAGE"), CapsSettings())

    assert result is not None
    assert result.violation_type is ViolationType.EXCESSIVE_CAPS
    assert "100.0%" in result.reason


@pytest.mark.parametrize(
    "content",
    ["SHORT", "HELLO 1234567890!!", "Hello World This Is Fine", "MOSTLY lowercase text here"],
)
def test_caps_not_flagged(content):
    assert check_excessive_caps(_ctx(content), CapsSettings()) is None


def test_caps_threshold_is_exclusive():
    settings = CapsSettings(max_percentage=50, min_length=4)
    assert check_excessive_caps(_ctx("ABcd"), settings) is None
    assert check_excessive_caps(_ctx("ABCd"), settings) is not None


# pipeline

def test_pipeline_precedence_spam_before_profanity():
    store = HistoryStore()
    _fill(store, [f"fuck {i}" for i in range(5)])
    pipeline = DetectorPipeline(store)

    result = pipeline.evaluate(_ctx("fuck 0"), DEFAULT_TENANT_CONFIG)

    assert result.violation_type is ViolationType.SPAM


def test_pipeline_content_only_skips_history_detectors():
    store = HistoryStore()
    _fill(store, [f"fuck {i}" for i in range(5)])
    pipeline = DetectorPipeline(store)

    result = pipeline.evaluate(_ctx("fuck 0"), DEFAULT_TENANT_CONFIG, content_only=True)

    assert result.violation_type is ViolationType.PROFANITY


def test_pipeline_profanity_before_links_before_caps():
    pipeline = DetectorPipeline(HistoryStore())

    assert (
        pipeline.evaluate(_ctx("SHIT AT HTTPS://EVIL.EXAMPLE.COM"), DEFAULT_TENANT_CONFIG).violation_type
        is ViolationType.PROFANITY
    )
    assert (
        pipeline.evaluate(_ctx("LOOK AT HTTPS://EVIL.EXAMPLE.COM"), DEFAULT_TENANT_CONFIG).violation_type
        is ViolationType.SUSPICIOUS_LINK
    )


def test_pipeline_skips_disabled_detectors():
    config = config_from_mapping(
        {"profanity": {"enabled": False}, "links": {"enabled": False}, "caps": {"enabled": False}}
    )
    pipeline = DetectorPipeline(HistoryStore())

    assert pipeline.evaluate(_ctx("FUCK HTTPS://EVIL.EXAMPLE.COM"), config) is None


def test_pipeline_clean_message():
    pipeline = DetectorPipeline(HistoryStore())
    assert pipeline.evaluate(_ctx("hello there, how are you?"), DEFAULT_TENANT_CONFIG) is None
