#!/usr/bin/env python3
"""Telegram bot: translate prompts and commit messages, or chat, via a remote AI.

Usage:
    python scripts/telegram_bot.py [--verbose]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from tgrelay.bot import RelayBot
from tgrelay.config import Config
from tgrelay.errors import ConfigError

load_dotenv()

logger = logging.getLogger("telegram_bot")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Suppress httpx request logging: it includes the bot token in URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> None:
    parser = argparse.ArgumentParser(description="Telegram prompt/commit translation relay")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()
    setup_logging(args.verbose)

    try:
        config = Config.from_env()
        bot = RelayBot.from_config(config)
        asyncio.run(bot.run())
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
