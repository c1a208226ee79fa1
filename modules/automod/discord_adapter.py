from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

import discord
from discord.ext import commands

from modules.utils.discord_utils import message_user, safe_get_channel

from .constants import MAX_BAN_DELETE_DAYS
from .interfaces import ActionResult, AuditSink, Privileges
from .models import AuditRecord, InboundMessage, PunishmentTier

__all__ = [
    "DiscordEnforcementTarget",
    "ChannelAuditSink",
    "build_inbound_message",
    "build_audit_embed",
    "describe_error",
]

_logger = logging.getLogger(__name__)

# Guild owners cannot be actioned by anyone.
OWNER_RANK = 1_000_000

_TIER_COLOURS = {
    PunishmentTier.WARN: discord.Color.gold(),
    PunishmentTier.MUTE: discord.Color.orange(),
    PunishmentTier.KICK: discord.Color.red(),
    PunishmentTier.BAN: discord.Color.dark_red(),
}


def describe_error(error: BaseException) -> str:
    if isinstance(error, discord.Forbidden):
        return "Missing Permissions"
    if isinstance(error, discord.NotFound):
        return "Target not found"
    if isinstance(error, discord.HTTPException):
        text = (error.text or "").strip()
        return text or f"HTTP {error.status}"
    return str(error).strip() or error.__class__.__name__


class DiscordEnforcementTarget:
    """Punishes a guild member through the discord.py API."""

    def __init__(self, member: discord.Member, guild: discord.Guild) -> None:
        self.member = member
        self.guild = guild

    def _rank_of(self, member: Optional[discord.Member]) -> int:
        if member is None:
            return 0
        if member.id == self.guild.owner_id:
            return OWNER_RANK
        top_role = getattr(member, "top_role", None)
        return top_role.position if top_role is not None else 0

    async def privileges(self) -> Privileges:
        me = self.guild.me
        if me is None:
            return Privileges()
        permissions = me.guild_permissions
        return Privileges(
            can_mute=permissions.moderate_members,
            can_kick=permissions.kick_members,
            can_ban=permissions.ban_members,
            actor_rank=self._rank_of(me),
            target_rank=self._rank_of(self.member),
        )

    async def send_direct_message(self, text: str) -> ActionResult:
        try:
            sent = await message_user(self.member, text)
        except discord.HTTPException as exc:
            return ActionResult.failed(describe_error(exc))
        if sent is None:
            return ActionResult.failed("Direct messages are closed")
        return ActionResult.ok()

    async def mute(self, duration: timedelta, reason: str) -> ActionResult:
        try:
            await self.member.timeout(duration, reason=reason)
        except discord.HTTPException as exc:
            return ActionResult.failed(describe_error(exc))
        _logger.info("Muted %s for %s: %s", self.member, duration, reason)
        return ActionResult.ok()

    async def kick(self, reason: str) -> ActionResult:
        try:
            await self.member.kick(reason=reason)
        except discord.HTTPException as exc:
            return ActionResult.failed(describe_error(exc))
        _logger.info("Kicked %s: %s", self.member, reason)
        return ActionResult.ok()

    async def ban(self, reason: str, delete_message_days: int) -> ActionResult:
        days = max(0, min(delete_message_days, MAX_BAN_DELETE_DAYS))
        try:
            await self.guild.ban(
                self.member,
                reason=reason,
                delete_message_seconds=days * 24 * 60 * 60,
            )
        except discord.HTTPException as exc:
            return ActionResult.failed(describe_error(exc))
        _logger.info("Banned %s: %s", self.member, reason)
        return ActionResult.ok()


def _message_deleter(message: discord.Message):
    async def delete() -> bool:
        try:
            await message.delete()
        except discord.NotFound:
            return False
        except discord.HTTPException as exc:
            _logger.info("Could not delete message %s: %s", message.id, describe_error(exc))
            return False
        return True

    return delete


def build_inbound_message(message: discord.Message) -> Optional[InboundMessage]:
    """Translate a guild message into an :class:`InboundMessage`.

    Direct messages return None; they are never moderated.
    """
    guild = message.guild
    if guild is None:
        return None

    author = message.author
    member = author if isinstance(author, discord.Member) else None
    roles = tuple(str(role.id) for role in getattr(member, "roles", ()) if role.id != guild.id)
    is_admin = bool(member is not None and member.guild_permissions.administrator)
    created_at = message.edited_at or message.created_at

    return InboundMessage(
        tenant_id=str(guild.id),
        author_id=str(author.id),
        channel_id=str(message.channel.id),
        content=message.content or "",
        author_role_ids=roles,
        author_is_admin=is_admin,
        author_is_bot=author.bot,
        attachment_count=len(message.attachments),
        created_at_ms=int(created_at.timestamp() * 1000) if created_at else None,
        message_id=str(message.id),
        tenant_name=guild.name,
        delete=_message_deleter(message),
        target=DiscordEnforcementTarget(member, guild) if member is not None else None,
    )


def _tier_label(tier: Optional[PunishmentTier]) -> str:
    return tier.value.capitalize() if tier else "None"


def build_audit_embed(entry: AuditRecord) -> discord.Embed:
    tier = entry.attempted_tier or entry.requested_tier
    colour = _TIER_COLOURS.get(tier, discord.Color.red()) if entry.success else discord.Color.dark_grey()
    embed = discord.Embed(
        title="Auto Moderation",
        colour=colour,
        timestamp=discord.utils.utcnow(),
    )
    embed.add_field(name="User", value=f"<@{entry.author_id}> ({entry.author_id})", inline=True)
    if entry.channel_id:
        embed.add_field(name="Channel", value=f"<#{entry.channel_id}>", inline=True)
    embed.add_field(
        name="Violation",
        value=entry.violation_type.value if entry.violation_type else "Unknown",
        inline=True,
    )
    embed.add_field(name="Reason", value=entry.reason or "Not specified", inline=False)
    embed.add_field(name="Requested", value=_tier_label(entry.requested_tier), inline=True)
    embed.add_field(name="Applied", value=_tier_label(entry.applied_tier), inline=True)
    embed.add_field(name="Violations", value=str(entry.violation_count), inline=True)
    if entry.failure_reason:
        embed.add_field(
            name=f"{_tier_label(entry.attempted_tier)} failed",
            value=entry.failure_reason[:1024],
            inline=False,
        )
    if entry.content:
        embed.add_field(name="Message", value=entry.content[:1024], inline=False)
    if entry.escalated:
        embed.set_footer(text="Punishment escalated")
    return embed


class ChannelAuditSink:
    """Posts audit records as embeds into the tenant's log channel."""

    def __init__(self, bot: commands.Bot, fallback: Optional[AuditSink] = None) -> None:
        self._bot = bot
        self._fallback = fallback

    async def record(self, entry: AuditRecord) -> None:
        if self._fallback is not None:
            try:
                await self._fallback.record(entry)
            except Exception:
                _logger.warning(
                    "Fallback audit sink failed for tenant %s", entry.tenant_id, exc_info=True
                )
        if not entry.log_channel_id:
            return

        channel = await safe_get_channel(self._bot, int(entry.log_channel_id))
        if channel is None:
            _logger.info(
                "Log channel %s for tenant %s not found", entry.log_channel_id, entry.tenant_id
            )
            return

        try:
            await channel.send(
                embed=build_audit_embed(entry),
                allowed_mentions=discord.AllowedMentions.none(),
            )
        except discord.Forbidden:
            _logger.info(
                "Missing permission to send messages in channel %s (guild %s)",
                entry.log_channel_id,
                entry.tenant_id,
            )
