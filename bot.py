from __future__ import annotations

import asyncio
import logging

from modules.core import configure_logging, load_runtime_config
from modules.core.moderator_bot import ModeratorBot
from modules.utils import mysql


async def _main() -> None:
    config = load_runtime_config()
    configure_logging(config.log_level)
    logger = logging.getLogger("moderator.startup")
    logger.info("Log level resolved to %s", config.log_level)
    logger.info(
        "Auto moderation settings: history=%s max_age=%ss violation_max_age=%ss sweep=%ss",
        config.engine.history_size,
        config.engine.history_max_age_seconds,
        config.engine.violation_max_age_seconds,
        config.engine.sweep_interval_seconds,
    )
    logger.info("Cog load logging enabled: %s", config.log_cog_loads)

    if not config.token:
        logger.critical("DISCORD_TOKEN is not set. Exiting.")
        return

    bot = ModeratorBot(log_cog_loads=config.log_cog_loads, engine_config=config.engine)

    try:
        await bot.start(config.token)
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        logger.exception("[FATAL] Bot crashed: %s", exc)
    finally:
        logger.info("Entering shutdown cleanup")
        if not bot.is_closed():
            try:
                await bot.close()
                logger.info("Bot connection closed cleanly")
            except Exception:
                logger.exception("Failed to close bot cleanly")
        try:
            await mysql.close_pool()
            logger.info("MySQL pool closed")
        except Exception:
            logger.exception("Failed to close MySQL pool cleanly")


if __name__ == "__main__":
    asyncio.run(_main())
