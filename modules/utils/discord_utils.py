from __future__ import annotations

import logging
from typing import Optional

import discord
from discord.ext import commands

log = logging.getLogger(__name__)


async def message_user(user: discord.abc.User, content: str, embed: discord.Embed = None):
    try:
        message = await user.send(content, embed=embed) if embed else await user.send(content)
    except discord.Forbidden:
        # DMs closed
        message = None
    return message


async def safe_get_channel(bot: commands.Bot, channel_id: int) -> Optional[discord.abc.GuildChannel]:
    chan = bot.get_channel(channel_id)
    if chan is None:
        try:
            chan = await bot.fetch_channel(channel_id)
        except discord.HTTPException as e:
            log.warning("failed to fetch channel %s: %s", channel_id, e)
    return chan
