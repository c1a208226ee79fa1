from __future__ import annotations

import logging
import os
from typing import Optional

import discord
from discord.ext import commands

from modules.automod import AutoModerationEngine, LoggingAuditSink
from modules.automod.discord_adapter import ChannelAuditSink
from modules.core.config import EngineConfig
from modules.utils import mysql

_logger = logging.getLogger(__name__)


class ModeratorBot(commands.Bot):
    def __init__(
        self,
        *,
        log_cog_loads: bool,
        engine_config: Optional[EngineConfig] = None,
    ) -> None:
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True

        super().__init__(
            command_prefix=lambda _, __: [],
            intents=intents,
            chunk_guilds_at_startup=False,
            help_command=None,
        )

        self._log_cog_loads = log_cog_loads
        self.automod = AutoModerationEngine(
            config_store=mysql.MySQLConfigStore(),
            audit_sink=ChannelAuditSink(self, fallback=LoggingAuditSink()),
            settings=engine_config,
        )

    async def setup_hook(self) -> None:  # type: ignore[override]
        try:
            await mysql.initialise_and_get_pool()
        except Exception:
            _logger.exception("MySQL init failed")
            raise

        self.automod.start()

        await self._load_extensions()

        try:
            await self.tree.sync(guild=None)
        except Exception:
            _logger.exception("Command tree sync failed")

    async def on_ready(self) -> None:  # type: ignore[override]
        _logger.warning("Bot connected as %s in %s guilds", self.user, len(self.guilds))

    async def on_guild_remove(self, guild: discord.Guild) -> None:  # type: ignore[override]
        self.automod.configs.invalidate(str(guild.id))

    async def _load_extensions(self) -> None:
        for filename in os.listdir("./cogs"):
            path = os.path.join("cogs", filename)
            if not (os.path.isfile(path) and filename.endswith(".py")):
                continue
            try:
                await self.load_extension(f"cogs.{filename[:-3]}")
                if self._log_cog_loads:
                    _logger.warning("Loaded Cog: %s", filename[:-3])
            except Exception:
                _logger.exception("Failed to load cog %s", filename)
                raise

    async def close(self) -> None:
        await self.automod.shutdown()
        await super().close()
