from __future__ import annotations

import io
import json
from typing import Any, Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from modules.automod import AutoModerationEngine, config_to_dict
from modules.automod.discord_adapter import build_inbound_message
from modules.core.moderator_bot import ModeratorBot

SECTIONS = (
    "spam",
    "profanity",
    "links",
    "caps",
    "punishments",
    "escalation",
    "logging",
    "exemptions",
)

COG_TEXTS_FALLBACK = {
    "stats": (
        "**Auto moderation stats**\n"
        "Tracked violations: {total_violations}\n"
        "Users with violations: {users_with_violations}\n"
        "Configured servers: {configured_tenants}\n"
        "Tracked authors: {tracked_authors} ({tracked_observations} messages)\n"
        "Messages checked: {processed_messages}, violations detected: {violations_detected}"
    ),
    "violations": "{user} has {count} auto moderation violation(s) here.",
    "reset_done": "Cleared auto moderation violations for {user}.",
    "reset_missing": "{user} had no auto moderation violations here.",
    "cleanup_done": (
        "Cleanup removed {observations} message(s), {authors} idle author(s) "
        "and {counters} stale counter(s)."
    ),
    "state_enabled": "enabled",
    "state_disabled": "disabled",
    "toggled": "Auto moderation is now {state}.",
    "invalid_path": "`{path}` is not a setting. Use `section.field`, e.g. `spam.max_messages`.",
    "updated": "`{path}` is now `{value}`.",
    "too_long": "Configuration is too long to display; showing it as a file.",
}


def _render(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value) or "(empty)"
    return str(value)


def _lookup(config_data: dict[str, Any], path: list[str]) -> tuple[bool, Any]:
    node: Any = config_data
    for part in path:
        if not isinstance(node, dict) or part not in node:
            return False, None
        node = node[part]
    return True, node


def _nest(path: list[str], value: Any) -> dict[str, Any]:
    payload: Any = value
    for part in reversed(path):
        payload = {part: payload}
    return payload


class AutoModerationCog(commands.Cog):
    """Feeds guild messages into the auto moderation engine."""

    def __init__(self, bot: ModeratorBot):
        self.bot = bot

    @property
    def engine(self) -> AutoModerationEngine:
        return self.bot.automod

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        inbound = build_inbound_message(message)
        if inbound is None:
            return
        await self.engine.process_message(inbound)

    @commands.Cog.listener()
    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        if before.content == after.content:
            return
        inbound = build_inbound_message(after)
        if inbound is None:
            return
        await self.engine.process_message_edit(inbound)

    automod_group = app_commands.Group(
        name="automod",
        description="Configure and inspect auto moderation.",
        default_permissions=discord.Permissions(manage_guild=True),
        guild_only=True,
    )

    config_group = app_commands.Group(
        name="config",
        description="View or change auto moderation settings.",
        parent=automod_group,
    )

    @automod_group.command(name="stats", description="Show auto moderation statistics.")
    async def stats(self, interaction: Interaction):
        message = COG_TEXTS_FALLBACK["stats"].format(**self.engine.get_stats())
        await interaction.response.send_message(message, ephemeral=True)

    @automod_group.command(name="toggle", description="Enable or disable auto moderation.")
    @app_commands.choices(
        state=[
            app_commands.Choice(name="Enable", value="true"),
            app_commands.Choice(name="Disable", value="false"),
        ]
    )
    async def toggle(self, interaction: Interaction, state: str):
        config = await self.engine.update_tenant_config(
            str(interaction.guild.id), {"enabled": state}
        )
        key = "state_enabled" if config.enabled else "state_disabled"
        await interaction.response.send_message(
            COG_TEXTS_FALLBACK["toggled"].format(state=COG_TEXTS_FALLBACK[key]),
            ephemeral=True,
        )

    @automod_group.command(name="violations", description="Show a member's violation count.")
    async def violations(self, interaction: Interaction, member: discord.Member):
        count = self.engine.get_user_violations(str(member.id), str(interaction.guild.id))
        await interaction.response.send_message(
            COG_TEXTS_FALLBACK["violations"].format(user=member.mention, count=count),
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @automod_group.command(name="reset", description="Clear a member's violations.")
    async def reset(self, interaction: Interaction, member: discord.Member):
        removed = self.engine.reset_user_violations(str(member.id), str(interaction.guild.id))
        key = "reset_done" if removed else "reset_missing"
        await interaction.response.send_message(
            COG_TEXTS_FALLBACK[key].format(user=member.mention),
            ephemeral=True,
            allowed_mentions=discord.AllowedMentions.none(),
        )

    @automod_group.command(name="cleanup", description="Prune stale auto moderation data now.")
    async def cleanup(self, interaction: Interaction):
        report = self.engine.force_cleanup()
        await interaction.response.send_message(
            COG_TEXTS_FALLBACK["cleanup_done"].format(
                observations=report.pruned_observations,
                authors=report.removed_authors,
                counters=report.removed_counters,
            ),
            ephemeral=True,
        )

    @config_group.command(name="view", description="Show the current settings.")
    @app_commands.choices(
        section=[app_commands.Choice(name=name, value=name) for name in SECTIONS]
    )
    async def config_view(self, interaction: Interaction, section: Optional[str] = None):
        config = await self.engine.get_tenant_config(str(interaction.guild.id))
        data = config_to_dict(config)
        if section:
            data = {section: data.get(section)}
        body = json.dumps(data, indent=2)
        if len(body) > 1900:
            await interaction.response.send_message(
                COG_TEXTS_FALLBACK["too_long"],
                file=discord.File(fp=io.BytesIO(body.encode("utf-8")), filename="automod.json"),
                ephemeral=True,
            )
            return
        await interaction.response.send_message(f"```json\n{body}\n```", ephemeral=True)

    @config_group.command(name="set", description="Change one setting, e.g. spam.max_messages.")
    async def config_set(self, interaction: Interaction, path: str, value: str):
        tenant_id = str(interaction.guild.id)
        parts = [part.strip() for part in path.split(".") if part.strip()]
        current = config_to_dict(await self.engine.get_tenant_config(tenant_id))
        found, existing = _lookup(current, parts)
        if not found or isinstance(existing, dict):
            await interaction.response.send_message(
                COG_TEXTS_FALLBACK["invalid_path"].format(path=path), ephemeral=True
            )
            return

        new_value: Any = value
        if isinstance(existing, list):
            new_value = [item.strip() for item in value.split(",") if item.strip()]

        updated = config_to_dict(
            await self.engine.update_tenant_config(tenant_id, _nest(parts, new_value))
        )
        _, applied = _lookup(updated, parts)
        await interaction.response.send_message(
            COG_TEXTS_FALLBACK["updated"].format(path=".".join(parts), value=_render(applied)),
            ephemeral=True,
        )

    @config_set.autocomplete("path")
    async def config_path_autocomplete(
        self,
        interaction: Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        config = await self.engine.get_tenant_config(str(interaction.guild.id))
        paths = list(_leaf_paths(config_to_dict(config)))
        filtered = [p for p in paths if current.lower() in p.lower()]
        return [app_commands.Choice(name=p, value=p) for p in filtered[:25]]


def _leaf_paths(data: dict[str, Any], prefix: str = ""):
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _leaf_paths(value, f"{path}.")
        else:
            yield path


async def setup(bot: commands.Bot):
    await bot.add_cog(AutoModerationCog(bot))
