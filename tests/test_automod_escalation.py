import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from modules.automod.escalation import EscalationResolver
from modules.automod.models import PunishmentTier
from modules.automod.settings import EscalationSettings

resolver = EscalationResolver()


@pytest.mark.parametrize(
    "count,expected",
    [
        (1, PunishmentTier.WARN),
        (2, PunishmentTier.WARN),
        (3, PunishmentTier.MUTE),
        (4, PunishmentTier.MUTE),
        (5, PunishmentTier.KICK),
        (7, PunishmentTier.KICK),
        (8, PunishmentTier.BAN),
        (50, PunishmentTier.BAN),
    ],
)
def test_custom_thresholds(count, expected):
    settings = EscalationSettings(warn_threshold=1, mute_threshold=3, kick_threshold=5, ban_threshold=8)
    assert resolver.determine_punishment(settings, count) is expected


def test_default_thresholds_warn_below_first_threshold():
    settings = EscalationSettings()
    tiers = [resolver.determine_punishment(settings, count) for count in range(1, 11)]

    assert tiers[:4] == [PunishmentTier.WARN] * 4
    assert tiers[4] is PunishmentTier.MUTE
    assert tiers[7] is PunishmentTier.KICK
    assert tiers[9] is PunishmentTier.BAN


def test_tiers_never_decrease_as_count_grows():
    settings = EscalationSettings()
    ranks = [resolver.determine_punishment(settings, count).rank for count in range(0, 40)]
    assert ranks == sorted(ranks)


def test_disabled_escalation_always_warns():
    settings = EscalationSettings(enabled=False)
    assert resolver.determine_punishment(settings, 100) is PunishmentTier.WARN


def test_is_escalation_marks_tier_changes_only():
    settings = EscalationSettings(warn_threshold=1, mute_threshold=3, kick_threshold=5, ban_threshold=8)

    flags = [resolver.is_escalation(settings, count) for count in range(1, 9)]

    assert flags == [False, False, True, False, True, False, False, True]
