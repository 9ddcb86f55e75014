#!/usr/bin/env python3
"""Main entry point for guild-jukebox.

Loads settings, configures logging, checks that the external ``yt-dlp`` and
``ffmpeg`` executables the download pipeline spawns are installed, then
runs the bot until it is interrupted.
"""

from __future__ import annotations

import json
import logging
import logging.config
import shutil
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from guild_jukebox.domain.shared.messages import ErrorMessages, LogTemplates

if TYPE_CHECKING:
    from guild_jukebox.config.settings import AudioSettings

_LOGGING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"


def setup_logging(log_level: str = "INFO", config_path: Path = _LOGGING_CONFIG_PATH) -> None:
    """Apply ``logging_config.json``; plain ``basicConfig`` if it is unusable."""
    resolved_level = getattr(logging, log_level.upper(), logging.INFO)

    try:
        with open(config_path) as f:
            logging.config.dictConfig(json.load(f))
    except (FileNotFoundError, json.JSONDecodeError, ValueError) as e:
        logging.basicConfig(
            level=resolved_level,
            format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.warning(LogTemplates.LOGGING_CONFIG_FALLBACK, config_path, type(e).__name__)

    logging.getLogger().setLevel(resolved_level)


def missing_executables(audio: AudioSettings) -> list[tuple[str, str]]:
    """Return ``(role, executable)`` for each pipeline stage not found on PATH."""
    stages = (("fetch", audio.fetch_executable), ("decode", audio.decode_executable))
    return [(role, exe) for role, exe in stages if shutil.which(exe) is None]


def main() -> int:
    from guild_jukebox.config.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)

    logger = logging.getLogger(__name__)

    token_value = settings.discord.token.get_secret_value()
    if not token_value:
        logger.error(ErrorMessages.DISCORD_TOKEN_REQUIRED)
        return 1

    missing = missing_executables(settings.audio)
    for role, executable in missing:
        logger.error(ErrorMessages.EXECUTABLE_NOT_FOUND, executable, role)
    if missing:
        return 1

    logger.info(LogTemplates.BOT_STARTING.format(environment=settings.environment))

    from guild_jukebox.config.container import create_container
    from guild_jukebox.infrastructure.discord.bot import create_bot

    bot = create_bot(create_container(settings), settings)

    try:
        logger.info(LogTemplates.BOT_STARTING_RUN)
        bot.run_with_graceful_shutdown(token_value)
    except KeyboardInterrupt:
        logger.info(LogTemplates.BOT_KEYBOARD_INTERRUPT)
    except Exception as e:
        logger.exception(LogTemplates.BOT_FATAL_ERROR, e)
        return 1
    else:
        logger.info(LogTemplates.BOT_STOPPED)
    return 0


def cli() -> None:
    """Console script entry point (``guild-jukebox``)."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
