"""Candela — Main entry point."""

import asyncio
import logging
import os
from typing import Optional

from .config import CandelaSettings, load_settings
from .channels.discord import DiscordChannel

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("candela")


def setup_logging(settings: CandelaSettings):
    """Log to stderr and to the configured log file."""
    handlers = [logging.StreamHandler()]                     # stderr (console)
    if settings.log_file:
        log_file = os.path.expanduser(settings.log_file)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=logging.INFO, format=_log_format, handlers=handlers)
    # discord.py is chatty at INFO about gateway sessions
    logging.getLogger("discord").setLevel(logging.WARNING)
    if settings.debug:
        logger.setLevel(logging.DEBUG)


async def run(settings: Optional[CandelaSettings] = None):
    """Main run loop."""
    settings = settings or load_settings()
    channel = None

    try:
        if not settings.token:
            logger.warning("No Discord bot token configured. Set CANDELA_TOKEN in the environment or .env.")
            return

        mode = "production" if settings.is_production else f"test (guild {settings.test_guild})"
        logger.info(f"Routing mode: {mode}")

        channel = DiscordChannel(settings)
        await channel.start()
        logger.info("Discord channel active.")

        # Keep alive
        logger.info("Candela is running. Press Ctrl+C to stop.")
        while channel.running:
            await asyncio.sleep(1)

    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}", exc_info=True)
    finally:
        if channel:
            await channel.stop()


def main():
    """Entry point."""
    settings = load_settings()
    setup_logging(settings)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
