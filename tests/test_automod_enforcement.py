import asyncio
import sys
from datetime import timedelta
from pathlib import Path

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from modules.automod.enforcement import EnforcementExecutor
from modules.automod.interfaces import ActionResult, Privileges
from modules.automod.models import PunishmentTier
from modules.automod.settings import DEFAULT_TENANT_CONFIG, config_from_mapping


class FakeTarget:
    def __init__(self, privileges=None, *, fail=(), raise_on=(), hang_on=(), dm_result=None):
        self._privileges = privileges or Privileges(True, True, True, actor_rank=10, target_rank=1)
        self.fail = set(fail)
        self.raise_on = set(raise_on)
        self.hang_on = set(hang_on)
        self.dm_result = dm_result or ActionResult.ok()
        self.calls: list[tuple] = []

    async def privileges(self):
        return self._privileges

    async def _act(self, name, *args):
        self.calls.append((name, *args))
        if name in self.hang_on:
            await asyncio.sleep(10)
        if name in self.raise_on:
            raise RuntimeError(f"{name} exploded")
        if name in self.fail:
            return ActionResult.failed(f"{name} refused")
        return ActionResult.ok()

    async def send_direct_message(self, text):
        self.calls.append(("dm", text))
        if "dm" in self.raise_on:
            raise RuntimeError("dm exploded")
        return self.dm_result

    async def mute(self, duration, reason):
        return await self._act("mute", duration, reason)

    async def kick(self, reason):
        return await self._act("kick", reason)

    async def ban(self, reason, delete_message_days):
        return await self._act("ban", reason, delete_message_days)


def _apply(target, tier, *, config=DEFAULT_TENANT_CONFIG, timeout=1.0, **kwargs):
    executor = EnforcementExecutor(timeout=timeout)
    return asyncio.run(executor.apply(config, target, tier, "being rude", **kwargs))


def test_warn_sends_direct_message():
    target = FakeTarget()

    outcome = _apply(target, PunishmentTier.WARN, server_name="Guild")

    assert outcome.success is True
    assert outcome.applied is PunishmentTier.WARN
    assert target.calls[0][0] == "dm"
    assert "Guild" in target.calls[0][1] and "being rude" in target.calls[0][1]


def test_warn_succeeds_even_when_notification_fails():
    target = FakeTarget(raise_on={"dm"})
    outcome = _apply(target, PunishmentTier.WARN)
    assert outcome.success is True

    target = FakeTarget(dm_result=ActionResult.failed("closed"))
    outcome = _apply(target, PunishmentTier.WARN)
    assert outcome.success is True


def test_mute_uses_configured_duration():
    config = config_from_mapping({"punishments": {"mute": {"duration": 15}}})
    target = FakeTarget()

    outcome = _apply(target, PunishmentTier.MUTE, config=config)

    assert outcome.success is True
    assert target.calls == [("mute", timedelta(minutes=15), "being rude")]


def test_mute_without_privilege_fails_without_fallback():
    target = FakeTarget(Privileges(can_mute=False, actor_rank=10, target_rank=1))

    outcome = _apply(target, PunishmentTier.MUTE)

    assert outcome.success is False
    assert outcome.applied is None
    assert [a.tier for a in outcome.attempts] == [PunishmentTier.MUTE]
    assert target.calls == []


def test_ban_clamps_purge_days():
    config = config_from_mapping({"punishments": {"ban": {"delete_message_days": 3}}})
    target = FakeTarget()

    outcome = _apply(target, PunishmentTier.BAN, config=config)

    assert outcome.applied is PunishmentTier.BAN
    assert target.calls == [("ban", "being rude", 3)]


def test_ban_falls_back_to_kick_then_mute_when_outranked():
    target = FakeTarget(Privileges(True, True, True, actor_rank=5, target_rank=5))

    outcome = _apply(target, PunishmentTier.BAN)

    assert outcome.success is True
    assert outcome.requested is PunishmentTier.BAN
    assert outcome.applied is PunishmentTier.MUTE
    assert [(a.tier, a.success) for a in outcome.attempts] == [
        (PunishmentTier.BAN, False),
        (PunishmentTier.KICK, False),
        (PunishmentTier.MUTE, True),
    ]
    assert [call[0] for call in target.calls] == ["mute"]


def test_mute_only_principal_lands_on_mute_for_ban():
    target = FakeTarget(Privileges(can_mute=True, actor_rank=10, target_rank=1))

    outcome = _apply(target, PunishmentTier.BAN)

    assert outcome.success is True
    assert outcome.applied is PunishmentTier.MUTE
    assert [(a.tier, a.success) for a in outcome.attempts] == [
        (PunishmentTier.BAN, False),
        (PunishmentTier.KICK, False),
        (PunishmentTier.MUTE, True),
    ]
    assert [call[0] for call in target.calls] == ["mute"]


def test_ban_failure_falls_back_to_kick():
    target = FakeTarget(fail={"ban"})

    outcome = _apply(target, PunishmentTier.BAN)

    assert outcome.applied is PunishmentTier.KICK
    assert outcome.attempts[0].reason == "ban refused"


def test_fallback_chain_is_bounded_and_can_fail_entirely():
    target = FakeTarget(Privileges())

    outcome = _apply(target, PunishmentTier.BAN)

    assert outcome.success is False
    assert outcome.applied is None
    assert len(outcome.attempts) == 3
    assert all(not attempt.success for attempt in outcome.attempts)


def test_disabled_tier_falls_back():
    config = config_from_mapping({"punishments": {"kick": {"enabled": False}}})
    target = FakeTarget()

    outcome = _apply(target, PunishmentTier.KICK, config=config)

    assert outcome.applied is PunishmentTier.MUTE
    assert "disabled" in outcome.attempts[0].reason


def test_timeout_counts_as_failed_attempt():
    target = FakeTarget(hang_on={"kick"})

    outcome = _apply(target, PunishmentTier.KICK, timeout=0.05)

    assert outcome.applied is PunishmentTier.MUTE
    assert "timed out" in outcome.attempts[0].reason


def test_unexpected_exception_counts_as_failed_attempt():
    target = FakeTarget(raise_on={"ban"})

    outcome = _apply(target, PunishmentTier.BAN)

    assert outcome.applied is PunishmentTier.KICK
    assert "ban exploded" in outcome.attempts[0].reason


def test_missing_target_fails():
    outcome = _apply(None, PunishmentTier.WARN)
    assert outcome.success is False
    assert outcome.attempts[0].reason == "No enforcement target available"


def test_message_deleted_when_tier_requests_it():
    deleted: list[bool] = []

    async def delete():
        deleted.append(True)
        return True

    outcome = _apply(FakeTarget(), PunishmentTier.WARN, delete_message=delete)

    assert outcome.message_deleted is True
    assert deleted == [True]


def test_message_kept_when_tier_disables_deletion():
    config = config_from_mapping({"punishments": {"warn": {"delete_message": False}}})
    deleted: list[bool] = []

    async def delete():
        deleted.append(True)
        return True

    outcome = _apply(FakeTarget(), PunishmentTier.WARN, config=config, delete_message=delete)

    assert outcome.message_deleted is False
    assert deleted == []


def test_delete_failure_does_not_block_enforcement():
    async def delete():
        raise RuntimeError("gone")

    outcome = _apply(FakeTarget(), PunishmentTier.MUTE, delete_message=delete)

    assert outcome.message_deleted is False
    assert outcome.success is True
